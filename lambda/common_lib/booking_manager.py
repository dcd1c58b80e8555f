"""
Booking Management Module
Handles availability listing and booking requests. Slots are never
reserved server-side; a booking is re-validated from config and then
announced by email.
"""

import logging
import uuid

import booking_slots_utils as slots
import email_utils as email
import request_utils as req
from exceptions import ApiError, EmailDeliveryError, ValidationFailed
from log_utils import log_event
from validation_utils import validate_booking

logger = logging.getLogger(__name__)


class BookingManager:
    """Manages discovery-call bookings"""

    @staticmethod
    def parse_days(raw, config):
        try:
            days = int(str(raw).strip())
        except (TypeError, ValueError):
            return config.lookahead_days
        return max(1, min(config.lookahead_days, days))

    @staticmethod
    def get_availability(event, request, config):
        """
        List bookable slots for `days` days starting at `date` (UTC)

        Raises:
            ApiError: invalid_date when `date` is not a YYYY-MM-DD calendar date
        """
        now = request.received_at
        days = BookingManager.parse_days(req.get_query_param(event, 'days'), config)

        raw_date = req.get_query_param(event, 'date')
        if raw_date:
            start_date = slots.parse_date(raw_date)
            if start_date is None:
                raise ApiError('invalid_date', 'date must be a valid YYYY-MM-DD value.')
        else:
            start_date = now.date()

        available = list(slots.generate_slots(start_date, days, now, config))
        return {
            "bookingType": config.booking_type,
            "slotDurationMinutes": config.slot_duration_minutes,
            "timezone": "UTC",
            "slots": available,
        }

    @staticmethod
    def create_booking(body, request, services):
        """
        Accept a booking for a slot that still satisfies the booking rules

        Notification is best-effort: the booking stands even if the email
        fails, and `notificationSent` reports the outcome.
        """
        config = services.config
        booking, field_errors = validate_booking(body, request.received_at, config)
        if field_errors:
            log_event(logger, logging.INFO, 'validation_failed', route='booking',
                      fields=sorted(field_errors), requestId=request.request_id)
            raise ValidationFailed(field_errors)

        confirmation = {
            "bookingId": str(uuid.uuid4()),
            "slotStart": booking.slot_start,
            "slotEnd": slots.slot_end_for(booking.slot_start, config),
        }

        subject, text_body = email.compose_booking_email(booking, confirmation, config.booking_type, request)
        try:
            services.email_sender.send(subject, text_body, reply_to=booking.email)
            notification_sent = True
        except EmailDeliveryError as e:
            log_event(logger, logging.ERROR, 'booking_notification_failed',
                      bookingId=confirmation["bookingId"], error=str(e), requestId=request.request_id)
            notification_sent = False

        log_event(logger, logging.INFO, 'booking_request', bookingId=confirmation["bookingId"],
                  slotStart=confirmation["slotStart"], notificationSent=notification_sent,
                  requestId=request.request_id)
        return {**confirmation, "notificationSent": notification_sent}
