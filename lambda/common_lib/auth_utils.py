import functools
import os
from dataclasses import dataclass

import jwt
from jwt import PyJWKClient


@dataclass(frozen=True)
class AuthSettings:
    issuer: str
    audience: str = None
    moderator_group: str = 'moderators'


def load_auth_settings(environ=None):
    env = os.environ if environ is None else environ
    return AuthSettings(
        issuer=(env.get('AUTH_ISSUER') or '').strip().rstrip('/'),
        audience=(env.get('AUTH_AUDIENCE') or '').strip() or None,
        moderator_group=(env.get('AUTH_MODERATOR_GROUP') or '').strip() or 'moderators',
    )

@functools.lru_cache(maxsize=1)
def get_auth_settings():
    return load_auth_settings()


class AuthorizationError(Exception):
    """Token missing, invalid, or not a moderator"""


def extract_token(event):
    headers = event.get('headers') or {}
    auth = headers.get('authorization') or headers.get('Authorization')
    if not auth or not auth.startswith('Bearer '):
        return None
    return auth.split(' ', 1)[1].strip() or None

@functools.lru_cache(maxsize=4)
def get_jwks_client(issuer):
    return PyJWKClient(f'{issuer}/.well-known/jwks.json')

def verify_jwt(token, issuer, audience=None, jwks_client=None):
    if not token:
        raise AuthorizationError('Unauthorized: No token provided')

    if not issuer:
        raise AuthorizationError('Unauthorized: AUTH_ISSUER is not configured')

    jwks_client = jwks_client or get_jwks_client(issuer)
    try:
        key = jwks_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            key.key,
            algorithms=['RS256'],
            audience=audience,
            issuer=issuer,
            options={'verify_aud': bool(audience)}
        )
    except jwt.ExpiredSignatureError:
        raise AuthorizationError('Unauthorized: Token has expired')
    except jwt.PyJWTError as e:
        raise AuthorizationError(f'Unauthorized: Invalid token - {str(e)}')

def get_groups(claims):
    groups = claims.get('cognito:groups') or claims.get('groups') or []
    if isinstance(groups, str):
        groups = [g.strip() for g in groups.replace(',', ' ').split()]
    return list(groups)

def require_moderator(claims, group):
    if group not in get_groups(claims):
        raise AuthorizationError(f'Forbidden: not a member of {group}')
    return claims

def moderator_context(claims):
    """Authorizer context; values must be strings for API Gateway"""
    context = {}
    for key, claim in (('email', 'email'), ('username', 'cognito:username'), ('sub', 'sub')):
        value = claims.get(claim) or (claims.get('username') if key == 'username' else None)
        if value:
            context[key] = str(value)
    return context

def generate_policy(principal_id, effect, resource, context=None):
    policy = {
        'principalId': principal_id,
        'policyDocument': {
            'Version': '2012-10-17',
            'Statement': [{
                'Action': 'execute-api:Invoke',
                'Effect': effect,
                'Resource': resource
            }]
        }
    }
    if context:
        policy['context'] = context
    return policy
