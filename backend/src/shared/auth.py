"""
Authentication utilities.

The acting principal is taken from API Gateway authorizer claims when an
authorizer is configured, otherwise from an HS256 bearer token issued by
`issue_access_token`.
"""
import time
from typing import Any, Dict, Optional

from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from .config import config
from .errors import Forbidden, InternalError, Unauthorized
from .logging import logger
from .models import Role

ALGORITHM = 'HS256'


def _signing_key() -> OctKey:
    if not config.ACCESS_TOKEN_SECRET:
        raise InternalError('ACCESS_TOKEN_SECRET is not configured')
    return OctKey.import_key(config.ACCESS_TOKEN_SECRET)


def get_claims(event: dict) -> Dict[str, Any]:
    """Extract authorizer claims, or an empty dict if none were attached."""
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_email(event: dict) -> Optional[str]:
    """Extract user email from authorizer claims."""
    return get_claims(event).get('email')


def get_bearer_token(event: dict) -> Optional[str]:
    """Return the token from an `Authorization: Bearer <token>` header."""
    headers = event.get('headers') or {}
    for name, value in headers.items():
        if name.lower() == 'authorization' and value:
            scheme, _, token = value.partition(' ')
            if scheme.lower() == 'bearer' and token.strip():
                return token.strip()
    return None


def issue_access_token(claims: Dict[str, Any], ttl_seconds: int = None) -> str:
    """Sign an access token carrying `claims` plus iat/exp."""
    now = int(time.time())
    payload = dict(claims)
    payload['iat'] = now
    payload['exp'] = now + (ttl_seconds if ttl_seconds is not None else config.ACCESS_TOKEN_TTL_SECONDS)
    return jwt.encode({'alg': ALGORITHM}, payload, _signing_key())


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry of an access token.

    Returns:
        The decoded claims; always contains 'email'

    Raises:
        Unauthorized: missing, malformed, tampered or expired token
    """
    if not token:
        raise Unauthorized('Missing access token')
    try:
        decoded = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
        registry = jwt.JWTClaimsRegistry(email={'essential': True}, exp={'essential': True})
        registry.validate(decoded.claims)
    except (JoseError, ValueError) as e:
        logger.info(f"Rejected access token: {e}")
        raise Unauthorized('Invalid access token') from e
    return decoded.claims


def get_acting_email(event: dict) -> str:
    """Email of the caller; raises Unauthorized if there is no identity."""
    email = get_user_email(event)
    if email:
        return email
    return verify_access_token(get_bearer_token(event))['email']


def is_admin(account: Optional[Dict[str, Any]]) -> bool:
    """Check whether a stored account carries the Admin role."""
    return bool(account) and Role.canonical(str(account.get('role', ''))) == Role.ADMIN


def require_admin(marketplace, email: str) -> Dict[str, Any]:
    """Load the caller's account and insist on the Admin role."""
    account = marketplace.accounts.get(email)
    if not is_admin(account):
        raise Forbidden('Admin access required')
    return account


def require_self_or_admin(marketplace, email: str, owner_email: str) -> None:
    """Allow the owner of a resource, or an admin."""
    if email == owner_email:
        return
    require_admin(marketplace, email)


def require_role(marketplace, email: str, role: str) -> Dict[str, Any]:
    """Load the caller's account and insist on `role`."""
    account = marketplace.get_account(email)
    if Role.canonical(str(account.get('role', ''))) != role:
        raise Forbidden(f'{role} access required')
    return account
