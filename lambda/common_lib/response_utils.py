import json
from decimal import Decimal

ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type,Authorization"


def cors_headers(allow_origin):
    """CORS headers attached to every response, preflight and errors included"""
    return {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Max-Age": "600",
        "Vary": "Origin",
    }

def convert_decimal(obj):
    """Convert Decimal objects to int/float for JSON serialization"""
    if isinstance(obj, list):
        return [convert_decimal(i) for i in obj]
    elif isinstance(obj, dict):
        return {k: convert_decimal(v) for k, v in obj.items()}
    elif isinstance(obj, Decimal):
        return int(obj) if obj % 1 == 0 else float(obj)
    return obj

def json_response(body, status_code, allow_origin):
    return {
        "statusCode": status_code,
        "headers": cors_headers(allow_origin),
        "body": json.dumps(convert_decimal(body), default=str)
    }

def preflight_response(allow_origin):
    return {
        "statusCode": 204,
        "headers": cors_headers(allow_origin),
        "body": ""
    }

def error_response(code, message, status_code, request_id, allow_origin, field_errors=None):
    body = {
        "status": "error",
        "code": code,
        "message": message,
    }
    if field_errors:
        body["fieldErrors"] = field_errors
    body["requestId"] = request_id
    return json_response(body, status_code, allow_origin)

def success_response(data, request_id, allow_origin, status_code=200):
    body = {
        "status": "success",
        **data,
        "requestId": request_id
    }
    return json_response(body, status_code, allow_origin)
