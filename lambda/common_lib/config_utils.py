"""
Process-wide configuration

Read once from the environment at cold start and passed explicitly to
every component afterwards. Never mutated after construction.
"""

import functools
import logging
import os
from dataclasses import dataclass


DEFAULT_ALLOWED_ORIGINS = 'https://www.waterapps.com.au,https://waterapps.com.au'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass(frozen=True)
class Config:
    allowed_origins: tuple
    max_body_bytes: int = 16384
    log_level: str = 'INFO'
    service_name: str = 'waterapps-contact-api'
    source_email: str = ''
    target_email: str = ''
    booking_type: str = 'DISCOVERY_30M'
    slot_duration_minutes: int = 30
    lookahead_days: int = 14
    min_lead_minutes: int = 720
    start_hour_utc: int = 0
    end_hour_utc: int = 8
    workdays_utc: frozenset = frozenset({1, 2, 3, 4, 5})
    reviews_table_name: str = ''
    reviews_status_index: str = 'status-created_at-index'
    reviews_retention_days: int = 365
    aws_region: str = 'ap-southeast-2'
    reviews_endpoint: str = ''

    @property
    def default_origin(self):
        return self.allowed_origins[0] if self.allowed_origins else ''

    @property
    def reviews_enabled(self):
        return bool(self.reviews_table_name)


def _int_env(environ, key, default, minimum, maximum):
    raw = environ.get(key)
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, value))


def _csv_env(environ, key, default):
    raw = environ.get(key) or default
    return tuple(part.strip() for part in raw.split(',') if part.strip())


def _workdays_env(environ, key, default):
    days = set()
    for part in _csv_env(environ, key, default):
        try:
            day = int(part)
        except ValueError:
            continue
        if 0 <= day <= 6:
            days.add(day)
    return frozenset(days)


def load_config(environ=None):
    """
    Build a Config from an environment mapping

    Args:
        environ (dict): Environment variables (defaults to os.environ)

    Returns:
        Config: Immutable settings with defaults and ranges applied
    """
    environ = os.environ if environ is None else environ

    log_level = (environ.get('LOG_LEVEL') or 'INFO').strip().upper()
    if log_level not in LOG_LEVELS:
        log_level = 'INFO'

    start_hour = _int_env(environ, 'BOOKING_START_HOUR_UTC', 0, 0, 23)
    end_hour = _int_env(environ, 'BOOKING_END_HOUR_UTC', 8, 1, 24)
    if end_hour <= start_hour:
        end_hour = min(24, start_hour + 1)

    return Config(
        allowed_origins=_csv_env(environ, 'ALLOWED_ORIGINS', DEFAULT_ALLOWED_ORIGINS),
        max_body_bytes=_int_env(environ, 'MAX_BODY_BYTES', 16384, 1024, 1048576),
        log_level=log_level,
        service_name=(environ.get('SERVICE_NAME') or 'waterapps-contact-api').strip(),
        source_email=(environ.get('SOURCE_EMAIL') or '').strip(),
        target_email=(environ.get('TARGET_EMAIL') or '').strip(),
        booking_type=(environ.get('BOOKING_TYPE') or 'DISCOVERY_30M').strip(),
        slot_duration_minutes=_int_env(environ, 'BOOKING_SLOT_DURATION_MINUTES', 30, 15, 240),
        lookahead_days=_int_env(environ, 'BOOKING_LOOKAHEAD_DAYS', 14, 1, 60),
        min_lead_minutes=_int_env(environ, 'BOOKING_MIN_LEAD_MINUTES', 720, 0, 10080),
        start_hour_utc=start_hour,
        end_hour_utc=end_hour,
        workdays_utc=_workdays_env(environ, 'BOOKING_WORKDAYS_UTC', '1,2,3,4,5'),
        reviews_table_name=(environ.get('REVIEWS_TABLE_NAME') or '').strip(),
        reviews_status_index=(environ.get('REVIEWS_STATUS_INDEX') or 'status-created_at-index').strip(),
        reviews_retention_days=_int_env(environ, 'REVIEWS_RETENTION_DAYS', 365, 1, 3650),
        aws_region=(environ.get('AWS_REGION') or environ.get('AWS_DEFAULT_REGION') or 'ap-southeast-2').strip(),
        reviews_endpoint=(environ.get('REVIEWS_ENDPOINT') or '').strip().rstrip('/'),
    )


@functools.lru_cache(maxsize=1)
def get_config():
    """Cold-start configuration, memoised for the lifetime of the process"""
    return load_config()


def configure_logging(config):
    """Apply the configured verbosity to the root logger (the Lambda runtime owns the handler)"""
    logger = logging.getLogger()
    if not logger.handlers:
        logging.basicConfig(format='%(levelname)s %(name)s %(message)s')
    logger.setLevel(getattr(logging, config.log_level, logging.INFO))
    return logger
