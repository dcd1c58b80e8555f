import base64
import json

import pytest

from router import ROUTE_HANDLERS, Route, handle_request, resolve_route
from exceptions import ApiError

from conftest import ORIGIN, FakeEmailSender


def call(event, services):
    response = handle_request(event, services)
    body = json.loads(response["body"]) if response.get("body") else None
    return response, body


VALID_CONTACT = {
    "name": "Jane Tester",
    "email": "jane@example.com",
    "company": "Acme",
    "phone": "+61 400 000 000",
    "message": "I would like to discuss a platform engagement.",
}

VALID_REVIEW = {
    "name": "Jane Tester",
    "email": "Jane@Example.com",
    "role": "CTO",
    "company": "Acme",
    "linkedin": "https://www.linkedin.com/in/jane-tester",
    "review": "WaterApps rebuilt our delivery pipeline in two weeks.",
    "rating": "5",
    "consent": True,
}


class TestOriginGuard:
    def test_options_preflight_bypasses_everything(self, make_event, services, email_sender):
        response, body = call(make_event(method="OPTIONS", origin=None), services)
        assert response["statusCode"] == 204
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN
        assert email_sender.sent == []

    def test_missing_origin_is_rejected(self, make_event, services, email_sender):
        response, body = call(make_event(body=VALID_CONTACT, origin=None), services)
        assert response["statusCode"] == 403
        assert body["code"] == "origin_required"
        assert email_sender.sent == []

    def test_unknown_origin_is_rejected_with_default_cors_origin(self, make_event, services):
        response, body = call(make_event(body=VALID_CONTACT, origin="https://evil.example"), services)
        assert response["statusCode"] == 403
        assert body["code"] == "origin_not_allowed"
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN

    def test_health_does_not_need_origin(self, make_event, services):
        response, body = call(make_event(method="GET", path="/health", origin=None), services)
        assert response["statusCode"] == 200
        assert body["status"] == "ok"
        assert body["service"] == "waterapps-contact-api"
        assert body["requestId"] == "req-test-123"
        assert body["timestamp"].endswith("Z")


class TestRouting:
    def test_unknown_route(self, make_event, services):
        response, body = call(make_event(method="GET", path="/nope"), services)
        assert response["statusCode"] == 404
        assert body["code"] == "not_found"
        assert body["status"] == "error"

    def test_wrong_method_on_known_path(self, make_event, services):
        response, body = call(make_event(method="GET", path="/contact"), services)
        assert response["statusCode"] == 405
        assert body["code"] == "method_not_allowed"

    def test_moderation_template_captures_review_id(self):
        route, params = resolve_route("POST", "/reviews/abc-123/moderate")
        assert route is Route.MODERATE_REVIEW
        assert params == {"reviewId": "abc-123"}

    def test_every_route_has_a_handler(self):
        assert set(ROUTE_HANDLERS) | {Route.HEALTH} == set(Route)

    def test_trailing_slash_is_ignored(self, make_event, services):
        response, body = call(make_event(path="/contact/", body=VALID_CONTACT), services)
        assert response["statusCode"] == 200

    def test_resolve_route_raises_not_found(self):
        with pytest.raises(ApiError) as excinfo:
            resolve_route("POST", "/reviews/abc/delete")
        assert excinfo.value.status_code == 404

    def test_unexpected_exception_becomes_internal_error(self, make_event, services, monkeypatch):
        import contact_manager

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(contact_manager.ContactManager, "submit_contact", staticmethod(explode))
        response, body = call(make_event(body=VALID_CONTACT), services)
        assert response["statusCode"] == 500
        assert body["code"] == "internal_error"
        assert "hello@waterapps.com.au" in body["message"]
        assert "boom" not in response["body"]


class TestBodyParsing:
    def test_non_object_json_is_invalid_payload(self, make_event, services):
        response, body = call(make_event(body=json.dumps(["not", "an", "object"])), services)
        assert response["statusCode"] == 400
        assert body["code"] == "invalid_payload"

    def test_syntax_error_is_invalid_json(self, make_event, services):
        response, body = call(make_event(body="{not json"), services)
        assert response["statusCode"] == 400
        assert body["code"] == "invalid_json"

    @pytest.mark.parametrize("raw", ["[" * 5000 + "]" * 5000, '{"name": ' + "1" * 5000 + "}"])
    def test_pathological_json_is_a_client_error(self, make_event, services, email_sender, raw):
        response, body = call(make_event(body=raw), services)
        assert response["statusCode"] == 400
        assert body["code"] == "invalid_json"
        assert email_sender.sent == []

    def test_oversized_body_is_rejected_by_bytes(self, make_event, services):
        # 6000 three-byte characters: under the limit in characters, over it in bytes
        payload = dict(VALID_CONTACT, message="€" * 6000)
        response, body = call(make_event(body=json.dumps(payload, ensure_ascii=False)), services)
        assert response["statusCode"] == 413
        assert body["code"] == "payload_too_large"

    def test_base64_body_is_decoded(self, make_event, services, email_sender):
        raw = base64.b64encode(json.dumps(VALID_CONTACT).encode("utf-8")).decode("ascii")
        response, body = call(make_event(body=raw, is_base64=True), services)
        assert response["statusCode"] == 200
        assert len(email_sender.sent) == 1


class TestContact:
    def test_non_string_fields_are_validation_errors(self, make_event, services, email_sender, dynamo):
        response, body = call(make_event(body={
            "name": 123,
            "email": "valid@example.com",
            "company": 99,
            "phone": {"nested": True},
            "message": "This is a valid length message.",
        }), services)

        assert response["statusCode"] == 400
        assert body["code"] == "validation_failed"
        assert body["fieldErrors"]["name"] == "Name is required (min 2 characters)."
        assert body["fieldErrors"]["company"] == "Company must be text."
        assert body["fieldErrors"]["phone"] == "Phone must be text."
        assert email_sender.sent == []
        assert dynamo.calls == []

    def test_oversized_message_is_rejected_not_truncated(self, make_event, services, email_sender):
        response, body = call(make_event(body=dict(VALID_CONTACT, message="a" * 4001)), services)
        assert response["statusCode"] == 400
        assert body["fieldErrors"]["message"] == "Message must be 4000 characters or less."
        assert email_sender.sent == []

    def test_oversized_company_is_rejected_not_truncated(self, make_event, services):
        response, body = call(make_event(body=dict(VALID_CONTACT, company="c" * 121)), services)
        assert response["statusCode"] == 400
        assert body["fieldErrors"]["company"] == "Company must be 120 characters or less."

    def test_valid_payload_sends_email(self, make_event, services, email_sender):
        response, body = call(make_event(body=VALID_CONTACT), services)
        assert response["statusCode"] == 200
        assert body["status"] == "success"
        assert body["requestId"] == "req-test-123"
        assert len(email_sender.sent) == 1
        assert email_sender.sent[0]["reply_to"] == "jane@example.com"
        assert email_sender.sent[0]["subject"] == "WaterApps Enquiry: Jane Tester - Acme"

    def test_email_failure_is_internal_error(self, make_event, config, dynamo):
        from router import Services
        failing = Services(config=config, email_sender=FakeEmailSender(fail=True), review_store=None)
        response, body = call(make_event(body=VALID_CONTACT), failing)
        assert response["statusCode"] == 500
        assert body["code"] == "internal_error"


class TestReviews:
    def test_submit_stores_pending_review_and_notifies(self, make_event, services, dynamo, email_sender):
        response, body = call(make_event(path="/reviews", body=VALID_REVIEW), services)

        assert response["statusCode"] == 200
        review_id = body["reviewId"]
        stored = dynamo.items[review_id]
        assert stored["status"] == {"S": "pending"}
        assert stored["email"] == {"S": "jane@example.com"}
        assert stored["rating"] == {"N": "5"}
        assert stored["consent"] == {"BOOL": True}
        assert stored["source_ip"] == {"S": "127.0.0.1"}
        assert dynamo.calls[0]["payload"]["ConditionExpression"] == "attribute_not_exists(review_id)"
        assert len(email_sender.sent) == 1

    def test_invalid_linkedin_never_reaches_store(self, make_event, services, dynamo):
        payload = dict(VALID_REVIEW, linkedin="https://example.com/jane")
        response, body = call(make_event(path="/reviews", body=payload), services)

        assert response["statusCode"] == 400
        assert body["fieldErrors"]["linkedin"] == "Please provide a valid HTTPS LinkedIn profile URL."
        assert dynamo.calls == []

    def test_notification_failure_does_not_fail_submission(self, make_event, config, dynamo):
        from db_utils import ReviewStore
        from router import Services
        failing = Services(config=config, email_sender=FakeEmailSender(fail=True),
                           review_store=ReviewStore.from_config(config, transport=dynamo))
        response, body = call(make_event(path="/reviews", body=VALID_REVIEW), failing)
        assert response["statusCode"] == 200
        assert body["reviewId"] in dynamo.items

    def test_store_not_configured(self, make_event, config, email_sender):
        from router import Services
        unconfigured = Services(config=config, email_sender=email_sender, review_store=None)
        response, body = call(make_event(path="/reviews", body=VALID_REVIEW), unconfigured)
        assert response["statusCode"] == 503
        assert body["code"] == "reviews_not_configured"

    def test_store_failure_is_internal_error(self, make_event, services, dynamo, monkeypatch):
        monkeypatch.setattr(dynamo, "PutItem",
                            lambda payload: (500, b'{"__type":"InternalServerError","message":"down"}'))
        response, body = call(make_event(path="/reviews", body=VALID_REVIEW), services)
        assert response["statusCode"] == 500
        assert body["code"] == "internal_error"
        assert "down" not in response["body"]

    def test_list_pending_reviews(self, make_event, services):
        call(make_event(path="/reviews", body=VALID_REVIEW), services)
        response, body = call(make_event(method="GET", path="/reviews", query={"status": "pending"}), services)

        assert response["statusCode"] == 200
        assert body["filter"] == {"status": "pending", "limit": 25}
        assert body["count"] == 1
        assert body["reviews"][0]["name"] == "Jane Tester"
        assert body["reviews"][0]["rating"] == 5

    def test_list_rejects_unknown_status(self, make_event, services):
        response, body = call(make_event(method="GET", path="/reviews", query={"status": "spam"}), services)
        assert response["statusCode"] == 400
        assert body["code"] == "invalid_status"


class TestModeration:
    def submit(self, make_event, services):
        _, body = call(make_event(path="/reviews", body=VALID_REVIEW), services)
        return body["reviewId"]

    def moderate(self, make_event, services, review_id, payload, claims=None):
        event = make_event(path=f"/reviews/{review_id}/moderate", body=payload,
                           claims=claims if claims is not None else {"email": "mod@waterapps.com.au"})
        return call(event, services)

    def test_approve_pending_review(self, make_event, services, dynamo):
        review_id = self.submit(make_event, services)
        response, body = self.moderate(make_event, services, review_id,
                                       {"decision": " Approved ", "note": "Looks genuine"})

        assert response["statusCode"] == 200
        assert body["review"]["review_id"] == review_id
        assert body["review"]["status"] == "approved"
        assert body["review"]["moderated_by"] == "mod@waterapps.com.au"
        assert body["review"]["moderation_note"] == "Looks genuine"
        assert dynamo.items[review_id]["status"] == {"S": "approved"}

    def test_unknown_decision_attempts_no_update(self, make_event, services, dynamo):
        review_id = self.submit(make_event, services)
        response, body = self.moderate(make_event, services, review_id, {"decision": "hold"})

        assert response["statusCode"] == 400
        assert body["code"] == "invalid_decision"
        assert "UpdateItem" not in dynamo.operations()

    def test_non_text_note(self, make_event, services, dynamo):
        review_id = self.submit(make_event, services)
        response, body = self.moderate(make_event, services, review_id, {"decision": "rejected", "note": 42})
        assert body["code"] == "invalid_note"
        assert "UpdateItem" not in dynamo.operations()

    def test_missing_review(self, make_event, services):
        response, body = self.moderate(make_event, services, "does-not-exist", {"decision": "approved"})
        assert response["statusCode"] == 404
        assert body["code"] == "review_not_found"

    def test_blank_review_id(self, make_event, services):
        event = make_event(path="/reviews/%20/moderate", body={"decision": "approved"})
        event["pathParameters"] = {"reviewId": "   "}
        event["requestContext"]["http"]["path"] = "/reviews/ /moderate"
        response, body = call(event, services)
        assert body["code"] == "invalid_review_id"

    def test_decided_review_can_be_decided_again(self, make_event, services, dynamo):
        # Only existence is checked, so a moderator can correct an earlier decision
        review_id = self.submit(make_event, services)
        self.moderate(make_event, services, review_id, {"decision": "approved"})
        response, body = self.moderate(make_event, services, review_id, {"decision": "rejected"},
                                       claims={"cognito:username": "second-mod"})

        assert response["statusCode"] == 200
        assert body["review"]["status"] == "rejected"
        assert body["review"]["moderated_by"] == "second-mod"
        assert dynamo.items[review_id]["status"] == {"S": "rejected"}

    def test_identity_falls_back_when_no_claims(self, make_event, services):
        review_id = self.submit(make_event, services)
        response, body = self.moderate(make_event, services, review_id, {"decision": "approved"}, claims={})
        assert body["review"]["moderated_by"] == "moderator"


class TestBooking:
    def test_availability_lists_slots(self, make_event, services):
        response, body = call(make_event(method="GET", path="/availability", query={"days": "3"}), services)
        assert response["statusCode"] == 200
        assert body["timezone"] == "UTC"
        assert body["slotDurationMinutes"] == 30
        assert len(body["slots"]) > 0

    def test_invalid_date(self, make_event, services):
        response, body = call(make_event(method="GET", path="/availability", query={"date": "2026-02-30"}), services)
        assert response["statusCode"] == 400
        assert body["code"] == "invalid_date"

    @pytest.mark.parametrize("slot_start", ["2026-03-01 10:00", "2026-W10-2T10:00:00Z"])
    def test_invalid_slot_format(self, make_event, services, email_sender, slot_start):
        response, body = call(make_event(path="/booking", body={
            "name": "Jane Tester",
            "email": "jane@example.com",
            "slotStart": slot_start,
        }), services)
        assert response["statusCode"] == 400
        assert body["code"] == "validation_failed"
        assert body["fieldErrors"]["slotStart"]
        assert email_sender.sent == []

    def test_first_available_slot_can_be_booked(self, make_event, services, email_sender):
        _, availability = call(make_event(method="GET", path="/availability", query={"days": "2"}), services)
        slot = availability["slots"][0]

        response, body = call(make_event(path="/booking", body={
            "name": "Jane Tester",
            "email": "jane@example.com",
            "company": "Acme",
            "notes": "Please focus on CI/CD controls.",
            "timezone": "Australia/Sydney",
            "slotStart": slot["slotStart"],
        }), services)

        assert response["statusCode"] == 200
        assert body["slotStart"] == slot["slotStart"]
        assert body["slotEnd"] == slot["slotEnd"]
        assert body["notificationSent"] is True
        assert body["bookingId"]
        assert len(email_sender.sent) == 1

    def test_failed_notification_still_confirms_booking(self, make_event, config):
        from router import Services
        from conftest import NOW
        failing = Services(config=config, email_sender=FakeEmailSender(fail=True), clock=lambda: NOW)
        _, availability = call(make_event(method="GET", path="/availability"), failing)
        response, body = call(make_event(path="/booking", body={
            "name": "Jane Tester",
            "email": "jane@example.com",
            "slotStart": availability["slots"][0]["slotStart"],
        }), failing)

        assert response["statusCode"] == 200
        assert body["status"] == "success"
        assert body["notificationSent"] is False
