"""
Validation utilities for the public submission forms
Each validator turns a loosely-typed JSON object into either a typed
input record or a field -> message error map. A wrong type is always a
field error, never an exception.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import booking_slots_utils as slots


EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^[0-9 ()+\-./]{6,30}$')
TIMEZONE_PATTERN = re.compile(r'^[A-Za-z0-9_+\-/]{1,64}$')
LINK_PATTERN = re.compile(r'https?://', re.IGNORECASE)
REPEATED_RUN_PATTERN = re.compile(r'(.)\1{14,}', re.DOTALL)

MAX_EMAIL_LENGTH = 254
MAX_LINKS = 3


@dataclass(frozen=True)
class ContactInput:
    name: str
    email: str
    message: str
    company: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class ReviewInput:
    name: str
    email: str
    linkedin: str
    review: str
    consent: bool
    role: Optional[str] = None
    company: Optional[str] = None
    rating: Optional[int] = None


@dataclass(frozen=True)
class BookingInput:
    name: str
    email: str
    slot_start: str
    company: Optional[str] = None
    notes: Optional[str] = None
    timezone: Optional[str] = None


def spam_error(text, label):
    """Message for free text that looks machine-generated, or None"""
    if len(LINK_PATTERN.findall(text)) > MAX_LINKS:
        return f"{label} contains too many links."
    if REPEATED_RUN_PATTERN.search(text):
        return f"{label} contains too many repeated characters."
    return None


def is_linkedin_profile_url(value):
    try:
        parts = urlsplit(value)
        host = (parts.hostname or '').lower()
    except ValueError:
        return False
    if parts.scheme != 'https' or parts.username or parts.password:
        return False
    if host != 'linkedin.com' and not host.endswith('.linkedin.com'):
        return False
    return bool(parts.path.strip('/'))


class FormValidator:
    """Collects field errors while reading values out of a raw payload"""

    def __init__(self, data):
        self.data = data
        self.errors = {}

    def fail(self, field, message):
        self.errors.setdefault(field, message)

    def required_text(self, field, label, min_length, max_length, spam_check=False):
        value = self.data.get(field)
        text = value.strip() if isinstance(value, str) else ''
        if len(text) < min_length:
            self.fail(field, f"{label} is required (min {min_length} characters).")
            return None
        if len(text) > max_length:
            self.fail(field, f"{label} must be {max_length} characters or less.")
            return None
        if spam_check:
            message = spam_error(text, label)
            if message:
                self.fail(field, message)
                return None
        return text

    def optional_text(self, field, label, max_length, spam_check=False):
        value = self.data.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            self.fail(field, f"{label} must be text.")
            return None
        text = value.strip()
        if not text:
            return None
        if len(text) > max_length:
            self.fail(field, f"{label} must be {max_length} characters or less.")
            return None
        if spam_check:
            message = spam_error(text, label)
            if message:
                self.fail(field, message)
                return None
        return text

    def email(self, field='email'):
        value = self.data.get(field)
        text = value.strip().lower() if isinstance(value, str) else ''
        if not text or len(text) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(text):
            self.fail(field, "Please provide a valid email address.")
            return None
        return text

    def phone(self, field='phone'):
        text = self.optional_text(field, 'Phone', 30)
        if text is not None and not PHONE_PATTERN.match(text):
            self.fail(field, "Please provide a valid phone number.")
            return None
        return text

    def timezone(self, field='timezone'):
        text = self.optional_text(field, 'Timezone', 64)
        if text is not None and not TIMEZONE_PATTERN.match(text):
            self.fail(field, "Timezone is not valid.")
            return None
        return text

    def linkedin(self, field='linkedin'):
        value = self.data.get(field)
        text = value.strip() if isinstance(value, str) else ''
        if not text or len(text) > 300 or not is_linkedin_profile_url(text):
            self.fail(field, "Please provide a valid HTTPS LinkedIn profile URL.")
            return None
        return text

    def rating(self, field='rating'):
        value = self.data.get(field)
        if value is None or value == '':
            return None
        if isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 5:
            return value
        if isinstance(value, str) and re.fullmatch(r'[1-5]', value.strip()):
            return int(value.strip())
        self.fail(field, "Rating must be a whole number from 1 to 5.")
        return None

    def consent(self, field='consent'):
        value = self.data.get(field)
        if value is True or value == 'yes':
            return True
        self.fail(field, "Consent is required to publish your review.")
        return False


def validate_contact(data):
    """
    Validate a contact form payload

    Returns:
        tuple: (ContactInput or None, dict of field errors)
    """
    form = FormValidator(data)
    values = dict(
        name=form.required_text('name', 'Name', 2, 100),
        email=form.email(),
        company=form.optional_text('company', 'Company', 120),
        phone=form.phone(),
        message=form.required_text('message', 'Message', 10, 4000, spam_check=True),
    )
    if form.errors:
        return None, form.errors
    return ContactInput(**values), {}


def validate_review(data):
    """Validate a review submission; same return contract as validate_contact"""
    form = FormValidator(data)
    values = dict(
        name=form.required_text('name', 'Name', 2, 100),
        email=form.email(),
        role=form.optional_text('role', 'Role', 120),
        company=form.optional_text('company', 'Company', 120),
        linkedin=form.linkedin(),
        review=form.required_text('review', 'Review', 20, 2000, spam_check=True),
        rating=form.rating(),
        consent=form.consent(),
    )
    if form.errors:
        return None, form.errors
    return ReviewInput(**values), {}


def validate_booking(data, now, config):
    """Validate a booking request, re-deriving slot legality from config"""
    form = FormValidator(data)
    values = dict(
        name=form.required_text('name', 'Name', 2, 100),
        email=form.email(),
        company=form.optional_text('company', 'Company', 120),
        notes=form.optional_text('notes', 'Notes', 2000, spam_check=True),
        timezone=form.timezone(),
    )

    slot_error = slots.validate_slot_start(data.get('slotStart'), now, config)
    if slot_error:
        form.fail('slotStart', slot_error)

    if form.errors:
        return None, form.errors
    return BookingInput(slot_start=data['slotStart'].strip(), **values), {}
