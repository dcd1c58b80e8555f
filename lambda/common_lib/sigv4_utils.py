"""
Signed JSON-over-HTTP client for the item store

Requests are signed with AWS Signature Version 4 by hand; only the
credential chain is borrowed from botocore. The transport is a plain
callable so tests (or another HTTP stack) can stand in for urllib.
"""

import functools
import hashlib
import hmac
import json
import logging
import urllib.error
import urllib.request
from datetime import datetime, timezone

from botocore.session import get_session

from exceptions import SigningError, StoreError, StoreErrorKind
from log_utils import log_event

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
TERMINATOR = 'aws4_request'
CONTENT_TYPE = 'application/x-amz-json-1.0'
TARGET_PREFIX = 'DynamoDB_20120810'
REQUEST_TIMEOUT_SECONDS = 5


def sha256_hex(data):
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key, message):
    return hmac.new(key, message.encode('utf-8'), hashlib.sha256).digest()


def derive_signing_key(secret_key, date_stamp, region, service):
    """HMAC chain: secret -> date -> region -> service -> terminator"""
    k_date = hmac_sha256(('AWS4' + secret_key).encode('utf-8'), date_stamp)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, TERMINATOR)


def build_canonical_request(method, path, headers, payload):
    """
    Deterministic signing input for one request

    Args:
        method (str): HTTP method
        path (str): URI path ('/' for the JSON API)
        headers (dict): Header name -> value; every entry is signed
        payload (bytes): Request body

    Returns:
        tuple: (canonical request str, signed header list str)
    """
    names = sorted(name.lower() for name in headers)
    lowered = {name.lower(): ' '.join(str(value).split()) for name, value in headers.items()}
    canonical_headers = ''.join(f"{name}:{lowered[name]}\n" for name in names)
    signed_headers = ';'.join(names)
    canonical_request = '\n'.join([
        method,
        path,
        '',
        canonical_headers,
        signed_headers,
        sha256_hex(payload),
    ])
    return canonical_request, signed_headers


def build_string_to_sign(amz_date, credential_scope, canonical_request):
    return '\n'.join([ALGORITHM, amz_date, credential_scope, sha256_hex(canonical_request)])


def sign_request(method, path, headers, payload, access_key, secret_key, region, service, when):
    """
    Compute the Authorization header for a request

    Returns:
        str: Authorization header value
    """
    amz_date = when.strftime('%Y%m%dT%H%M%SZ')
    date_stamp = when.strftime('%Y%m%d')
    canonical_request, signed_headers = build_canonical_request(method, path, headers, payload)
    credential_scope = f"{date_stamp}/{region}/{service}/{TERMINATOR}"
    string_to_sign = build_string_to_sign(amz_date, credential_scope, canonical_request)
    signing_key = derive_signing_key(secret_key, date_stamp, region, service)
    signature = hmac.new(signing_key, string_to_sign.encode('utf-8'), hashlib.sha256).hexdigest()
    return (
        f"{ALGORITHM} Credential={access_key}/{credential_scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )


@functools.lru_cache(maxsize=1)
def get_credential_session():
    return get_session()

def resolve_credentials():
    """Frozen credentials from the standard AWS chain, or SigningError"""
    credentials = get_credential_session().get_credentials()
    if credentials is None:
        raise SigningError('No AWS credentials available for signing')
    frozen = credentials.get_frozen_credentials()
    if not frozen.access_key or not frozen.secret_key:
        raise SigningError('AWS credentials are incomplete')
    return frozen


def urllib_transport(url, headers, body):
    """POST `body` and return (status, response bytes) for any HTTP status"""
    request = urllib.request.Request(url, data=body, headers=headers, method='POST')
    try:
        with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT_SECONDS) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as e:
        return e.code, e.read()


class SignedJsonClient:
    """Calls `<Operation>` on a JSON-over-HTTP AWS endpoint with SigV4 auth"""

    def __init__(self, region, service='dynamodb', endpoint=None, transport=None,
                 credentials_provider=None, clock=None):
        self.region = region
        self.service = service
        self.endpoint = endpoint or f"https://{service}.{region}.amazonaws.com"
        self.host = self.endpoint.split('://', 1)[-1].split('/', 1)[0]
        self.transport = transport or urllib_transport
        self.credentials_provider = credentials_provider or resolve_credentials
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def build_request(self, operation, payload):
        """
        Produce the signed headers and body for one operation

        Raises:
            SigningError: If credentials are missing at call time
        """
        credentials = self.credentials_provider()
        when = self.clock().astimezone(timezone.utc)
        body = json.dumps(payload, separators=(',', ':')).encode('utf-8')

        headers = {
            'content-type': CONTENT_TYPE,
            'host': self.host,
            'x-amz-date': when.strftime('%Y%m%dT%H%M%SZ'),
            'x-amz-target': f"{TARGET_PREFIX}.{operation}",
        }
        if credentials.token:
            headers['x-amz-security-token'] = credentials.token

        headers['authorization'] = sign_request(
            'POST', '/', headers, body,
            credentials.access_key, credentials.secret_key,
            self.region, self.service, when,
        )
        return headers, body

    def call(self, operation, payload):
        """
        Execute a store operation

        Returns:
            dict: Parsed JSON response

        Raises:
            StoreError: Non-2xx status or transport failure
        """
        headers, body = self.build_request(operation, payload)
        headers = {name: value for name, value in headers.items() if name != 'host'}

        try:
            status, raw = self.transport(self.endpoint + '/', headers, body)
        except (urllib.error.URLError, OSError) as e:
            raise StoreError(StoreErrorKind.TRANSPORT, None, str(e))

        try:
            data = json.loads(raw or b'{}')
        except ValueError:
            data = {}

        if 200 <= status < 300:
            return data

        raw_type = data.get('__type', '')
        message = data.get('message') or data.get('Message') or ''
        kind = StoreErrorKind.from_type(raw_type)
        log_event(logger, logging.DEBUG, 'store_error', operation=operation,
                  status=status, type=raw_type)
        raise StoreError(kind, status, message, raw_type=raw_type)
