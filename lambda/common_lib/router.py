"""
Request router for the forms API

Maps (method, path) onto a closed set of routes, applies the origin
guard and body parser, and renders every outcome in one envelope.
"""

import functools
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

import request_utils as req
import response_utils as resp
from booking_manager import BookingManager
from config_utils import configure_logging, get_config
from contact_manager import ContactManager
from cors_utils import enforce_origin, resolve_allow_origin
from db_utils import ReviewStore
from email_utils import SesEmailSender
from exceptions import ApiError
from log_utils import log_event, log_exception
from review_manager import ReviewManager, format_timestamp

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong. Please email hello@waterapps.com.au directly."


class Route(Enum):
    HEALTH = ('GET', '/health')
    SUBMIT_CONTACT = ('POST', '/contact')
    SUBMIT_REVIEW = ('POST', '/reviews')
    LIST_REVIEWS = ('GET', '/reviews')
    MODERATE_REVIEW = ('POST', '/reviews/{reviewId}/moderate')
    AVAILABILITY = ('GET', '/availability')
    BOOKING = ('POST', '/booking')

    @property
    def method(self):
        return self.value[0]

    @property
    def template(self):
        return self.value[1]

    @property
    def pattern(self):
        regex = re.sub(r'\{(\w+)\}', r'(?P<\1>[^/]+)', self.template)
        return re.compile(f'^{regex}$')


@dataclass(frozen=True)
class Services:
    config: Any
    email_sender: Any
    review_store: Optional[Any] = None
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))


def resolve_route(method, path):
    """
    Find the route for a request

    Returns:
        tuple: (Route, dict of path parameters)

    Raises:
        ApiError: not_found (404) or method_not_allowed (405)
    """
    path_matched = False
    for route in Route:
        match = route.pattern.match(path)
        if not match:
            continue
        path_matched = True
        if route.method == method:
            return route, match.groupdict()
    if path_matched:
        raise ApiError('method_not_allowed', 'Method not allowed.', 405)
    raise ApiError('not_found', 'Route not found.', 404)


def contact_route(event, body, request, services):
    return ContactManager.submit_contact(body, request, services)

def submit_review_route(event, body, request, services):
    return ReviewManager.submit_review(body, request, services)

def list_reviews_route(event, body, request, services):
    return ReviewManager.list_reviews(event, request, services)

def moderate_review_route(event, body, request, services):
    return ReviewManager.moderate_review(event, body, request, services)

def availability_route(event, body, request, services):
    return BookingManager.get_availability(event, request, services.config)

def booking_route(event, body, request, services):
    return BookingManager.create_booking(body, request, services)


ROUTE_HANDLERS = {
    Route.SUBMIT_CONTACT: contact_route,
    Route.SUBMIT_REVIEW: submit_review_route,
    Route.LIST_REVIEWS: list_reviews_route,
    Route.MODERATE_REVIEW: moderate_review_route,
    Route.AVAILABILITY: availability_route,
    Route.BOOKING: booking_route,
}


def handle_request_errors(func):
    """Render ApiError as its envelope and anything else as internal_error"""
    @functools.wraps(func)
    def wrapper(event, services):
        request = req.build_request_context(event, services.clock())
        allow_origin = resolve_allow_origin(request.origin, services.config)
        try:
            return func(event, request, services)
        except ApiError as e:
            return resp.error_response(e.code, e.message, e.status_code, request.request_id,
                                       allow_origin, e.field_errors)
        except Exception as e:
            log_exception(logger, 'unhandled_error', error_type=type(e).__name__,
                          path=request.path, method=request.method, requestId=request.request_id)
            return resp.error_response('internal_error', INTERNAL_ERROR_MESSAGE, 500,
                                       request.request_id, allow_origin)
    return wrapper


@handle_request_errors
def handle_request(event, request, services):
    config = services.config
    allow_origin = resolve_allow_origin(request.origin, config)

    if request.method == 'OPTIONS':
        return resp.preflight_response(allow_origin)

    route, path_params = resolve_route(request.method, request.path)

    if route is Route.HEALTH:
        return resp.json_response({
            "status": "ok",
            "service": config.service_name,
            "requestId": request.request_id,
            "timestamp": format_timestamp(request.received_at),
        }, 200, allow_origin)

    enforce_origin(request, config)

    if path_params:
        event = {**event, 'pathParameters': {**(event.get('pathParameters') or {}), **path_params}}

    body = req.parse_json_body(event, config.max_body_bytes) if route.method == 'POST' else {}
    result = ROUTE_HANDLERS[route](event, body, request, services)

    log_event(logger, logging.DEBUG, 'request_completed', route=route.name, requestId=request.request_id)
    return resp.success_response(result, request.request_id, allow_origin)


def build_services(config):
    review_store = ReviewStore.from_config(config) if config.reviews_enabled else None
    return Services(
        config=config,
        email_sender=SesEmailSender.from_config(config),
        review_store=review_store,
    )


@functools.lru_cache(maxsize=1)
def get_services():
    config = get_config()
    configure_logging(config)
    return build_services(config)


def lambda_handler(event, context):
    return handle_request(event, get_services())
