"""
Review store

Put / query / update of review records over the signed JSON client.
Existence conditions on every write are the only concurrency control.
"""

import logging
from decimal import Decimal

from boto3.dynamodb.types import TypeDeserializer

from exceptions import ReviewConflictError, ReviewNotFoundError, StoreError
from log_utils import log_event
from sigv4_utils import SignedJsonClient

logger = logging.getLogger(__name__)
deserializer = TypeDeserializer()

REVIEW_STATUSES = ('pending', 'approved', 'rejected')


def serialize_value(value):
    """Scalar -> tagged attribute value; other types are a programming error"""
    if value is None:
        return {'NULL': True}
    if isinstance(value, bool):
        return {'BOOL': value}
    if isinstance(value, str):
        return {'S': value}
    if isinstance(value, (int, float, Decimal)):
        return {'N': str(value)}
    raise TypeError(f"Unsupported attribute type: {type(value).__name__}")

def serialize_item(item):
    return {k: serialize_value(v) for k, v in item.items()}

def _json_safe(value):
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value

def deserialize_item(item):
    """Tagged item -> plain dict with numbers as int/float"""
    if not item:
        return None
    return {k: _json_safe(deserializer.deserialize(v)) for k, v in item.items()}


class ReviewStore:
    """Review table operations"""

    def __init__(self, table_name, status_index, client):
        self.table_name = table_name
        self.status_index = status_index
        self.client = client

    @classmethod
    def from_config(cls, config, transport=None):
        client = SignedJsonClient(
            config.aws_region,
            endpoint=config.reviews_endpoint or None,
            transport=transport,
        )
        return cls(config.reviews_table_name, config.reviews_status_index, client)

    def put_review(self, record):
        """
        Create a review record; fails if the id is already taken

        Raises:
            ReviewConflictError: If review_id already exists
            StoreError: For any other store failure
        """
        try:
            self.client.call('PutItem', {
                'TableName': self.table_name,
                'Item': serialize_item(record),
                'ConditionExpression': 'attribute_not_exists(review_id)',
            })
        except StoreError as e:
            if e.is_conditional_check_failed:
                raise ReviewConflictError(record['review_id'])
            raise
        log_event(logger, logging.INFO, 'review_stored', reviewId=record['review_id'])

    def query_reviews_by_status(self, status, limit):
        """Newest-first reviews with the given status"""
        result = self.client.call('Query', {
            'TableName': self.table_name,
            'IndexName': self.status_index,
            'KeyConditionExpression': '#status = :status',
            'ExpressionAttributeNames': {'#status': 'status'},
            'ExpressionAttributeValues': {':status': serialize_value(status)},
            'ScanIndexForward': False,
            'Limit': limit,
        })
        return [deserialize_item(item) for item in result.get('Items', [])]

    def update_review_moderation(self, review_id, decision, moderated_by, note, timestamp):
        """
        Record a moderation decision in one conditional write

        Returns:
            dict: The updated record

        Raises:
            ReviewNotFoundError: If review_id does not exist
        """
        try:
            result = self.client.call('UpdateItem', {
                'TableName': self.table_name,
                'Key': {'review_id': serialize_value(review_id)},
                'UpdateExpression': (
                    'SET #status = :status, updated_at = :ts, moderated_at = :ts, '
                    'moderated_by = :moderated_by, moderation_note = :note'
                ),
                'ConditionExpression': 'attribute_exists(review_id)',
                'ExpressionAttributeNames': {'#status': 'status'},
                'ExpressionAttributeValues': serialize_item({
                    ':status': decision,
                    ':ts': timestamp,
                    ':moderated_by': moderated_by,
                    ':note': note,
                }),
                'ReturnValues': 'ALL_NEW',
            })
        except StoreError as e:
            if e.is_conditional_check_failed:
                raise ReviewNotFoundError(review_id)
            raise
        return deserialize_item(result.get('Attributes')) or {}
