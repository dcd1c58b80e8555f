"""
Common exceptions used across the application
"""

from enum import Enum


class ApiError(Exception):
    """Client-visible error rendered as an error envelope"""
    def __init__(self, code, message, status_code=400, field_errors=None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field_errors = field_errors
        super().__init__(self.message)


class ValidationFailed(ApiError):
    """Raised when a validator produced at least one field error"""
    def __init__(self, field_errors):
        super().__init__(
            'validation_failed',
            'Please correct the highlighted fields.',
            400,
            field_errors=dict(field_errors)
        )


class ConfigurationError(Exception):
    """Fatal deployment misconfiguration"""


class SigningError(ConfigurationError):
    """The request signer cannot produce a signature"""


class StoreErrorKind(Enum):
    CONDITIONAL_CHECK_FAILED = 'ConditionalCheckFailedException'
    RESOURCE_NOT_FOUND = 'ResourceNotFoundException'
    THROTTLED = 'ProvisionedThroughputExceededException'
    ACCESS_DENIED = 'AccessDeniedException'
    VALIDATION = 'ValidationException'
    TRANSPORT = 'TransportError'
    UNKNOWN = 'Unknown'

    @classmethod
    def from_type(cls, raw_type):
        """Map a store `__type` value (optionally namespaced with '#') to a kind"""
        name = (raw_type or '').rsplit('#', 1)[-1]
        if name in ('ThrottlingException', 'RequestLimitExceeded'):
            return cls.THROTTLED
        if name in ('UnrecognizedClientException', 'InvalidSignatureException',
                    'MissingAuthenticationTokenException'):
            return cls.ACCESS_DENIED
        for kind in cls:
            if kind.value == name:
                return kind
        return cls.UNKNOWN


class StoreError(Exception):
    """Non-2xx answer (or no answer) from the item store"""
    def __init__(self, kind, status_code=None, message='', raw_type=None):
        self.kind = kind
        self.status_code = status_code
        self.message = message
        self.raw_type = raw_type
        super().__init__(f"{kind.name} ({status_code}): {message}")

    @property
    def is_conditional_check_failed(self):
        return self.kind is StoreErrorKind.CONDITIONAL_CHECK_FAILED


class ReviewConflictError(Exception):
    """A review with this id already exists"""


class ReviewNotFoundError(Exception):
    """No review with this id exists"""


class EmailDeliveryError(Exception):
    """The email sender could not hand the message to SES"""
