import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from exceptions import EmailDeliveryError
from log_utils import log_event

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"


class EmailTemplate:
    """Subjects for outbound notifications"""

    CONTACT = "WaterApps Enquiry: {name}"
    CONTACT_WITH_COMPANY = "WaterApps Enquiry: {name} - {company}"
    REVIEW = "WaterApps Review Submitted: {name}"
    BOOKING = "WaterApps Booking Request: {name} @ {slot_start}"


class SesEmailSender:
    """Sends plain-text notifications to the site owner through SES"""

    def __init__(self, source_email, target_email, region=None, client=None):
        self.source_email = source_email
        self.target_email = target_email
        self.region = region
        self._client = client

    @classmethod
    def from_config(cls, config):
        return cls(config.source_email, config.target_email, region=config.aws_region)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('ses', region_name=self.region)
        return self._client

    def send(self, subject, text_body, reply_to=None):
        """
        Hand one message to SES

        Returns:
            str: SES MessageId

        Raises:
            EmailDeliveryError: Not configured, or SES refused the message
        """
        if not self.source_email or not self.target_email:
            raise EmailDeliveryError("SOURCE_EMAIL and TARGET_EMAIL must be configured")

        params = {
            'Source': self.source_email,
            'Destination': {'ToAddresses': [self.target_email]},
            'Message': {
                'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                'Body': {'Text': {'Data': text_body, 'Charset': 'UTF-8'}},
            },
        }
        if reply_to:
            params['ReplyToAddresses'] = [reply_to]

        try:
            response = self.client.send_email(**params)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            raise EmailDeliveryError(f"SES rejected message: {error_code}") from e
        except BotoCoreError as e:
            raise EmailDeliveryError(f"SES call failed: {e}") from e

        message_id = response['MessageId']
        log_event(logger, logging.INFO, 'email_sent', messageId=message_id)
        return message_id


def _line(label, value):
    return f"{label + ':':<10}{value if value not in (None, '') else NOT_PROVIDED}"


def compose_contact_email(contact, request):
    if contact.company:
        subject = EmailTemplate.CONTACT_WITH_COMPANY.format(name=contact.name, company=contact.company)
    else:
        subject = EmailTemplate.CONTACT.format(name=contact.name)

    body = "\n".join([
        "New enquiry from waterapps.com.au",
        "",
        _line("Name", contact.name),
        _line("Email", contact.email),
        _line("Company", contact.company),
        _line("Phone", contact.phone),
        _line("Time", request.received_at.isoformat()),
        "",
        "Message:",
        contact.message,
        "",
        "---",
        f"Reply directly to this email to respond to {contact.name}.",
        f"Request: {request.request_id}",
    ])
    return subject, body


def compose_review_email(review, record):
    body = "\n".join([
        "A new review is waiting for moderation.",
        "",
        _line("Review", record['review_id']),
        _line("Name", review.name),
        _line("Email", review.email),
        _line("Role", review.role),
        _line("Company", review.company),
        _line("LinkedIn", review.linkedin),
        _line("Rating", review.rating),
        "",
        review.review,
    ])
    return EmailTemplate.REVIEW.format(name=review.name), body


def compose_booking_email(booking, confirmation, booking_type, request):
    body = "\n".join([
        f"New {booking_type} booking request",
        "",
        _line("Booking", confirmation['bookingId']),
        _line("Start", confirmation['slotStart']),
        _line("End", confirmation['slotEnd']),
        _line("Name", booking.name),
        _line("Email", booking.email),
        _line("Company", booking.company),
        _line("Timezone", booking.timezone),
        "",
        "Notes:",
        booking.notes or NOT_PROVIDED,
        "",
        "---",
        "The slot is not reserved until you confirm it with the requester.",
        f"Request: {request.request_id}",
    ])
    subject = EmailTemplate.BOOKING.format(name=booking.name, slot_start=confirmation['slotStart'])
    return subject, body
