import json
import logging
import os
import sys

# Add common_lib to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'common_lib'))

import auth_utils as auth

logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())


def lambda_handler(event, context):
    """
    Allow moderation routes only for verified members of the moderator group
    """
    settings = auth.get_auth_settings()
    resource = event.get('methodArn') or event.get('routeArn') or '*'

    token = auth.extract_token(event)
    if not token:
        logger.warning(json.dumps({'event': 'authorizer_denied', 'reason': 'missing_token'}))
        return auth.generate_policy('unauthorized', 'Deny', resource,
                                    context={'errorMessage': 'Missing token'})

    try:
        claims = auth.verify_jwt(token, settings.issuer, settings.audience)
        auth.require_moderator(claims, settings.moderator_group)
    except auth.AuthorizationError as e:
        logger.warning(json.dumps({'event': 'authorizer_denied', 'reason': str(e)}))
        return auth.generate_policy('unauthorized', 'Deny', resource,
                                    context={'errorMessage': str(e)})

    context_values = auth.moderator_context(claims)
    logger.info(json.dumps({'event': 'authorizer_allowed', 'sub': claims.get('sub')}))
    return auth.generate_policy(claims.get('sub', 'moderator'), 'Allow', resource, context=context_values)
