"""
Contact Management Module
Handles the contact form workflow
"""

import logging

import email_utils as email
from exceptions import ValidationFailed
from log_utils import log_event
from validation_utils import validate_contact

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thank you for contacting WaterApps. We'll be in touch within 24 hours."


class ContactManager:
    """Manages contact enquiries"""

    @staticmethod
    def submit_contact(body, request, services):
        """
        Validate an enquiry and email it to the site owner

        The email is the committed action here, so a delivery failure
        propagates and the caller sees an internal error.

        Returns:
            dict: Route-specific success fields
        """
        contact, field_errors = validate_contact(body)
        if field_errors:
            log_event(logger, logging.INFO, 'validation_failed', route='contact',
                      fields=sorted(field_errors), requestId=request.request_id)
            raise ValidationFailed(field_errors)

        subject, text_body = email.compose_contact_email(contact, request)
        services.email_sender.send(subject, text_body, reply_to=contact.email)

        log_event(logger, logging.INFO, 'contact_form_submission',
                  hasCompany=bool(contact.company), requestId=request.request_id)
        return {"message": SUCCESS_MESSAGE}
