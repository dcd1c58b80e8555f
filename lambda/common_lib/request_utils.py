import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timezone

from exceptions import ApiError


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    route_key: str
    origin: str
    request_id: str
    source_ip: str
    user_agent: str
    received_at: datetime


def get_query_param(event, key, default=None):
    return (event.get('queryStringParameters') or {}).get(key, default)

def get_header(event, key, default=None):
    """Header lookup ignoring case (API Gateway v2 lower-cases, v1 does not)"""
    headers = event.get('headers') or {}
    if key in headers:
        return headers[key]
    lowered = key.lower()
    for name, value in headers.items():
        if name.lower() == lowered:
            return value
    return default

def get_path_param(event, key, default=None):
    return (event.get('pathParameters') or {}).get(key, default)

def get_authorizer_context(event):
    return (event.get('requestContext') or {}).get('authorizer') or {}


def build_request_context(event, now=None):
    """Extract the per-invocation request facts from an API Gateway event (v2 or v1)"""
    request_context = event.get('requestContext') or {}
    http = request_context.get('http') or {}
    identity = request_context.get('identity') or {}

    method = (http.get('method') or event.get('httpMethod') or '').upper()
    path = http.get('path') or event.get('rawPath') or event.get('path') or '/'
    if len(path) > 1:
        path = path.rstrip('/')

    return RequestContext(
        method=method,
        path=path,
        route_key=event.get('routeKey') or f"{method} {path}",
        origin=(get_header(event, 'origin') or '').strip(),
        request_id=request_context.get('requestId') or '',
        source_ip=http.get('sourceIp') or identity.get('sourceIp') or '',
        user_agent=http.get('userAgent') or identity.get('userAgent') or get_header(event, 'user-agent', ''),
        received_at=now or datetime.now(timezone.utc),
    )


def parse_json_body(event, max_bytes):
    """
    Decode, size-check and JSON-parse the request body

    Args:
        event (dict): API Gateway event
        max_bytes (int): Ceiling on the decoded body size in bytes

    Returns:
        dict: The parsed JSON object

    Raises:
        ApiError: payload_too_large (413), invalid_json (400) or invalid_payload (400)
    """
    raw = event.get('body')
    if raw is None:
        raw = ''

    if event.get('isBase64Encoded'):
        try:
            data = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            raise ApiError('invalid_payload', 'Request body could not be decoded.')
    else:
        data = raw.encode('utf-8') if isinstance(raw, str) else bytes(raw)

    if len(data) > max_bytes:
        raise ApiError('payload_too_large', f"Request body must be {max_bytes} bytes or less.", 413)

    # ValueError covers bad UTF-8, JSON syntax and over-long integer literals
    try:
        body = json.loads(data.decode('utf-8') or '{}')
    except (ValueError, RecursionError):
        raise ApiError('invalid_json', 'Request body must be valid JSON.')

    if not isinstance(body, dict):
        raise ApiError('invalid_payload', 'Request body must be a JSON object.')
    return body


def get_authorizer_claims(event):
    """Claims from whichever authorizer shape API Gateway delivered"""
    authorizer = get_authorizer_context(event)
    jwt_context = authorizer.get('jwt')
    if isinstance(jwt_context, dict) and isinstance(jwt_context.get('claims'), dict):
        return jwt_context['claims']
    if isinstance(authorizer.get('lambda'), dict):
        return authorizer['lambda']
    if isinstance(authorizer.get('claims'), dict):
        return authorizer['claims']
    return authorizer


def get_moderator_identity(event, fallback='moderator'):
    claims = get_authorizer_claims(event)
    for claim in ('email', 'cognito:username', 'username', 'sub'):
        value = claims.get(claim)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return fallback
