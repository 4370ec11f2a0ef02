"""Session authentication for the StackAlchemy API.

Requests carry ``Authorization: Bearer <token>`` where the token is a JWT
issued by the identity layer and signed with the shared session secret. The
``sub`` claim is the user ID.
"""

import time
from typing import Annotated

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.errors import unauthorized

from .dependencies import SettingsDep

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_session_token(
    user_id: str,
    secret: str,
    algorithm: str = "HS256",
    expires_in: int = 3600,
) -> str:
    """Issue a session token for a user.

    Args:
        user_id: Value of the ``sub`` claim.
        secret: Signing secret.
        algorithm: JWT algorithm.
        expires_in: Lifetime in seconds.

    Returns:
        Encoded JWT.
    """
    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in}
    token: str = jwt.encode(payload, secret, algorithm=algorithm)
    return token


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> str:
    """Verify a session token and return its user ID.

    Raises:
        ProcedureError: UNAUTHORIZED if the token is invalid, expired or has
            no subject.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise unauthorized("Session expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("invalid_session_token", error=str(e))
        raise unauthorized() from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise unauthorized()
    return user_id


async def get_current_user_id(
    settings: SettingsDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Resolve the authenticated user from the bearer token.

    Raises:
        ProcedureError: UNAUTHORIZED if no valid token is present.
    """
    if credentials is None or not credentials.credentials:
        raise unauthorized()
    user_id = decode_session_token(
        credentials.credentials,
        settings.session_secret,
        settings.session_algorithm,
    )
    structlog.contextvars.bind_contextvars(user_id=user_id)
    return user_id


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
