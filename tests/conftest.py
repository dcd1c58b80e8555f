import json
from datetime import datetime, timezone

import pytest

from config_utils import load_config
from db_utils import ReviewStore
from exceptions import EmailDeliveryError
from router import Services

ORIGIN = "https://www.waterapps.com.au"
NOW = datetime(2026, 3, 2, 9, 17, 30, tzinfo=timezone.utc)

TEST_ENV = {
    "ALLOWED_ORIGINS": ORIGIN,
    "MAX_BODY_BYTES": "16384",
    "LOG_LEVEL": "ERROR",
    "SOURCE_EMAIL": "varun@waterapps.com.au",
    "TARGET_EMAIL": "varun@waterapps.com.au",
    "BOOKING_TYPE": "DISCOVERY_30M",
    "BOOKING_SLOT_DURATION_MINUTES": "30",
    "BOOKING_LOOKAHEAD_DAYS": "14",
    "BOOKING_MIN_LEAD_MINUTES": "0",
    "BOOKING_START_HOUR_UTC": "0",
    "BOOKING_END_HOUR_UTC": "24",
    "BOOKING_WORKDAYS_UTC": "0,1,2,3,4,5,6",
    "REVIEWS_TABLE_NAME": "reviews-test",
    "AWS_REGION": "ap-southeast-2",
}


class FakeEmailSender:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, subject, text_body, reply_to=None):
        if self.fail:
            raise EmailDeliveryError("SES rejected message: Throttling")
        self.sent.append({"subject": subject, "body": text_body, "reply_to": reply_to})
        return f"message-{len(self.sent)}"


def _error(status, error_type, message):
    payload = {"__type": f"com.amazonaws.dynamodb.v20120810#{error_type}", "message": message}
    return status, json.dumps(payload).encode("utf-8")


class FakeDynamoTransport:
    """In-memory stand-in for the DynamoDB JSON API behind the signing client"""

    def __init__(self):
        self.items = {}
        self.calls = []

    def __call__(self, url, headers, body):
        operation = headers["x-amz-target"].split(".", 1)[1]
        payload = json.loads(body)
        self.calls.append({"url": url, "operation": operation, "headers": headers, "payload": payload})
        return getattr(self, operation)(payload)

    def operations(self):
        return [call["operation"] for call in self.calls]

    def PutItem(self, payload):
        item = payload["Item"]
        key = item["review_id"]["S"]
        if payload.get("ConditionExpression") == "attribute_not_exists(review_id)" and key in self.items:
            return _error(400, "ConditionalCheckFailedException", "The conditional request failed")
        self.items[key] = item
        return 200, b"{}"

    def Query(self, payload):
        status = payload["ExpressionAttributeValues"][":status"]["S"]
        matching = [item for item in self.items.values() if item["status"]["S"] == status]
        matching.sort(key=lambda item: item["created_at"]["S"], reverse=not payload.get("ScanIndexForward", True))
        matching = matching[:payload.get("Limit", len(matching))]
        return 200, json.dumps({"Items": matching, "Count": len(matching)}).encode("utf-8")

    def UpdateItem(self, payload):
        key = payload["Key"]["review_id"]["S"]
        if key not in self.items:
            return _error(400, "ConditionalCheckFailedException", "The conditional request failed")
        names = payload.get("ExpressionAttributeNames", {})
        values = payload["ExpressionAttributeValues"]
        item = dict(self.items[key])
        for clause in payload["UpdateExpression"][len("SET "):].split(", "):
            name, placeholder = [part.strip() for part in clause.split("=")]
            item[names.get(name, name)] = values[placeholder]
        self.items[key] = item
        return 200, json.dumps({"Attributes": item}).encode("utf-8")


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIDEXAMPLE")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-southeast-2")


@pytest.fixture
def config():
    return load_config(TEST_ENV)


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def dynamo():
    return FakeDynamoTransport()


@pytest.fixture
def services(config, email_sender, dynamo):
    return Services(
        config=config,
        email_sender=email_sender,
        review_store=ReviewStore.from_config(config, transport=dynamo),
        clock=lambda: NOW,
    )


@pytest.fixture
def make_event():
    def _make_event(method="POST", path="/contact", body=None, origin=ORIGIN,
                    query=None, path_params=None, claims=None, is_base64=False):
        headers = {}
        if origin:
            headers["origin"] = origin
        request_context = {
            "requestId": "req-test-123",
            "http": {"method": method, "path": path, "sourceIp": "127.0.0.1", "userAgent": "pytest"},
        }
        if claims is not None:
            request_context["authorizer"] = {"jwt": {"claims": claims}}
        if body is not None and not isinstance(body, str):
            body = json.dumps(body)
        return {
            "headers": headers,
            "body": body,
            "isBase64Encoded": is_base64,
            "queryStringParameters": query,
            "pathParameters": path_params,
            "requestContext": request_context,
        }
    return _make_event
