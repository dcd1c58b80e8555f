import json


def log_event(logger, level, event, **fields):
    """Emit one single-line JSON log record, e.g. {"event": "review_submitted", ...}"""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, json.dumps({'event': event, **fields}, default=str))


def log_exception(logger, event, **fields):
    logger.exception(json.dumps({'event': event, **fields}, default=str))
