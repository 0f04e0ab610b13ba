"""Authentication for the Ledgerly API.

Callers authenticate with a Firebase ID token. The ``role`` custom claim is
"user" (default) or "admin". Scheduled jobs may instead present the shared
service key in the ``X-Service-Role-Key`` header.
"""

import hmac
import os
from typing import Any, Dict, Optional

from fastapi import Depends, Header, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth

from ledgerly.api.exceptions import ForbiddenError, UnauthorizedError, UserNotFoundError
from ledgerly.utils.logging import get_logger

logger = get_logger("auth")

# Missing credentials are reported as UnauthorizedError rather than FastAPI's default
security = HTTPBearer(auto_error=False)

SERVICE_USER_ID = "service"


class User:
    """Authenticated caller."""

    def __init__(self, user_id: str, role: str, email: Optional[str] = None):
        self.user_id = user_id
        self.role = role  # 'user', 'admin' or 'service'
        self.email = email

    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_service(self) -> bool:
        return self.role == "service"


def verify_firebase_token(token: str) -> Dict[str, Any]:
    """Verify Firebase ID token and return decoded claims.

    Args:
        token: Firebase ID token string

    Returns:
        Decoded token payload with user information

    Raises:
        UnauthorizedError: If token is invalid or expired
    """
    try:
        return firebase_auth.verify_id_token(token)
    except firebase_auth.ExpiredIdTokenError:
        raise UnauthorizedError("Token has expired")
    except firebase_auth.RevokedIdTokenError:
        raise UnauthorizedError("Token has been revoked")
    except firebase_auth.InvalidIdTokenError as e:
        raise UnauthorizedError(f"Invalid Firebase token: {str(e)}")
    except Exception as e:
        logger.error(f"Firebase token verification error: {str(e)}")
        raise UnauthorizedError(f"Authentication failed: {str(e)}")


def user_from_claims(decoded: Dict[str, Any]) -> User:
    user_id = decoded.get("uid")
    if not user_id:
        raise UnauthorizedError("Invalid token: missing user ID")
    return User(user_id=user_id, role=decoded.get("role", "user"), email=decoded.get("email"))


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> User:
    """Get current authenticated user from Firebase token.

    Raises:
        UnauthorizedError: If token is missing or invalid
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")
    return user_from_claims(verify_firebase_token(credentials.credentials))


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency to require the admin role.

    Raises:
        ForbiddenError: If user is not an admin
    """
    if not current_user.is_admin():
        logger.warning(f"Admin access denied for user {current_user.user_id}")
        raise ForbiddenError("Admin role required")
    return current_user


def set_role_claim(user_id: str, role: str) -> None:
    """Write the ``role`` custom claim; it applies from the user's next token refresh.

    Raises:
        UserNotFoundError: If Firebase has no account for ``user_id``
    """
    try:
        firebase_auth.set_custom_user_claims(user_id, {"role": role})
    except firebase_auth.UserNotFoundError:
        raise UserNotFoundError(user_id)
    logger.info(f"Role claim for user {user_id} set to {role}")


def is_valid_service_key(key: Optional[str]) -> bool:
    """Compare a presented key with SERVICE_ROLE_KEY in constant time."""
    expected = os.getenv("SERVICE_ROLE_KEY")
    if not expected or not key:
        return False
    return hmac.compare_digest(key.encode(), expected.encode())


def get_caller(
    x_service_role_key: Optional[str] = Header(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> User:
    """Resolve the caller from the service key or a Firebase token.

    Raises:
        UnauthorizedError: If a service key is presented but wrong, or no valid token is sent
    """
    if x_service_role_key is not None:
        if not is_valid_service_key(x_service_role_key):
            logger.warning("Rejected request with invalid service key")
            raise UnauthorizedError("Invalid service key")
        return User(user_id=SERVICE_USER_ID, role="service")
    return get_current_user(credentials)


def require_service_or_admin(caller: User = Depends(get_caller)) -> User:
    """Dependency for jobs that scheduled services or admins may trigger.

    Raises:
        ForbiddenError: If the caller is a regular user
    """
    if not (caller.is_service() or caller.is_admin()):
        raise ForbiddenError("Admin role or service key required")
    return caller
