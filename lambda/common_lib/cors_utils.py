"""
Origin guard for browser-facing routes

Every route except the health check must come from one of the
configured site origins. The CORS header always carries an allowed
origin so that preflight behaves the same on rejection paths.
"""

import logging

from exceptions import ApiError
from log_utils import log_event

logger = logging.getLogger(__name__)


def resolve_allow_origin(origin, config):
    """The origin to echo in Access-Control-Allow-Origin"""
    if origin and origin in config.allowed_origins:
        return origin
    return config.default_origin


def enforce_origin(request, config):
    """
    Reject requests whose Origin header is absent or not allow-listed

    Raises:
        ApiError: origin_required (403) or origin_not_allowed (403)
    """
    if not request.origin:
        log_event(logger, logging.WARNING, 'origin_rejected', reason='origin_required',
                  path=request.path, sourceIp=request.source_ip, requestId=request.request_id)
        raise ApiError('origin_required', 'Requests must include an Origin header.', 403)

    if request.origin not in config.allowed_origins:
        log_event(logger, logging.WARNING, 'origin_rejected', reason='origin_not_allowed',
                  origin=request.origin, path=request.path, sourceIp=request.source_ip,
                  requestId=request.request_id)
        raise ApiError('origin_not_allowed', 'This origin is not allowed.', 403)

    return request.origin
