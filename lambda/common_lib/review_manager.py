"""
Review Management Module
Handles review submission, listing for moderators, and moderation.

Moderation state machine: pending -> approved | rejected. Only existence
of the record is checked, so a decided review can be decided again
(a correction overwrites the previous decision).
"""

import logging
import uuid
from datetime import timedelta

import email_utils as email
import request_utils as req
from db_utils import REVIEW_STATUSES
from exceptions import (
    ApiError, EmailDeliveryError, ReviewConflictError, ReviewNotFoundError, ValidationFailed
)
from log_utils import log_event
from validation_utils import validate_review

logger = logging.getLogger(__name__)

DECISIONS = ('approved', 'rejected')
DEFAULT_LIST_LIMIT = 25
MAX_LIST_LIMIT = 100
MAX_NOTE_LENGTH = 1000
MAX_REVIEW_ID_LENGTH = 128


def format_timestamp(value):
    """Millisecond ISO-8601 UTC timestamp; sorts chronologically as text"""
    return value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class ReviewManager:
    """Manages customer reviews and their moderation"""

    @staticmethod
    def require_store(services):
        if services.review_store is None:
            raise ApiError('reviews_not_configured', 'Reviews are not available right now.', 503)
        return services.review_store

    @staticmethod
    def build_review_record(review, request, retention_days):
        now = request.received_at
        timestamp = format_timestamp(now)
        return {
            'review_id': str(uuid.uuid4()),
            'status': 'pending',
            'created_at': timestamp,
            'updated_at': timestamp,
            'name': review.name,
            'email': review.email,
            'role': review.role or '',
            'company': review.company or '',
            'linkedin': review.linkedin,
            'review': review.review,
            'rating': review.rating,
            'consent': review.consent,
            'source_ip': request.source_ip,
            'user_agent': request.user_agent,
            'origin': request.origin,
            'request_id': request.request_id,
            'expires_at': int((now + timedelta(days=retention_days)).timestamp()),
        }

    @staticmethod
    def submit_review(body, request, services):
        """
        Store a new pending review, then notify the owner (best-effort)

        Returns:
            dict: {'reviewId': ...}
        """
        store = ReviewManager.require_store(services)

        review, field_errors = validate_review(body)
        if field_errors:
            log_event(logger, logging.INFO, 'validation_failed', route='reviews',
                      fields=sorted(field_errors), requestId=request.request_id)
            raise ValidationFailed(field_errors)

        record = ReviewManager.build_review_record(review, request, services.config.reviews_retention_days)
        try:
            store.put_review(record)
        except ReviewConflictError:
            # uuid4 collision means the id generator is broken, not the client
            raise RuntimeError(f"Review id collision: {record['review_id']}")

        subject, text_body = email.compose_review_email(review, record)
        try:
            services.email_sender.send(subject, text_body, reply_to=review.email)
        except EmailDeliveryError as e:
            log_event(logger, logging.ERROR, 'review_notification_failed',
                      reviewId=record['review_id'], error=str(e), requestId=request.request_id)

        log_event(logger, logging.INFO, 'review_submitted', reviewId=record['review_id'],
                  requestId=request.request_id)
        return {"reviewId": record['review_id']}

    @staticmethod
    def parse_limit(raw):
        try:
            limit = int(str(raw).strip())
        except (TypeError, ValueError):
            return DEFAULT_LIST_LIMIT
        return max(1, min(MAX_LIST_LIMIT, limit))

    @staticmethod
    def list_reviews(event, request, services):
        """Most recent reviews for one status, newest first"""
        store = ReviewManager.require_store(services)

        raw_status = req.get_query_param(event, 'status') or 'pending'
        status = raw_status.strip().lower()
        if status not in REVIEW_STATUSES:
            raise ApiError('invalid_status', 'status must be one of: pending, approved, rejected.')

        limit = ReviewManager.parse_limit(req.get_query_param(event, 'limit'))
        reviews = store.query_reviews_by_status(status, limit)
        return {
            "filter": {"status": status, "limit": limit},
            "count": len(reviews),
            "reviews": reviews,
        }

    @staticmethod
    def parse_decision(body):
        decision = body.get('decision')
        decision = decision.strip().lower() if isinstance(decision, str) else ''
        if decision not in DECISIONS:
            raise ApiError('invalid_decision', 'decision must be "approved" or "rejected".')
        return decision

    @staticmethod
    def parse_note(body):
        note = body.get('note')
        if note is None:
            return None
        if not isinstance(note, str):
            raise ApiError('invalid_note', 'note must be text.')
        note = note.strip()
        if len(note) > MAX_NOTE_LENGTH:
            raise ApiError('invalid_note', f"note must be {MAX_NOTE_LENGTH} characters or less.")
        return note or None

    @staticmethod
    def moderate_review(event, body, request, services):
        """
        Apply an approve/reject decision to an existing review

        Raises:
            ApiError: invalid_review_id, invalid_decision, invalid_note (400)
                      or review_not_found (404)
        """
        store = ReviewManager.require_store(services)

        review_id = req.get_path_param(event, 'reviewId')
        if not isinstance(review_id, str) or not review_id.strip() or len(review_id) > MAX_REVIEW_ID_LENGTH:
            raise ApiError('invalid_review_id', 'A review id is required.')
        review_id = review_id.strip()

        decision = ReviewManager.parse_decision(body)
        note = ReviewManager.parse_note(body)
        moderated_by = req.get_moderator_identity(event)
        timestamp = format_timestamp(request.received_at)

        try:
            updated = store.update_review_moderation(review_id, decision, moderated_by, note, timestamp)
        except ReviewNotFoundError:
            raise ApiError('review_not_found', 'Review not found.', 404)

        log_event(logger, logging.INFO, 'review_moderated', reviewId=review_id,
                  decision=decision, moderatedBy=moderated_by, requestId=request.request_id)
        return {
            "review": {
                "review_id": review_id,
                "status": updated.get('status', decision),
                "moderated_at": updated.get('moderated_at', timestamp),
                "moderated_by": updated.get('moderated_by', moderated_by),
                "moderation_note": updated.get('moderation_note', note),
            }
        }
