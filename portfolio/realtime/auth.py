"""Access-token verification for realtime connections."""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError

from .registry import VerifiedUser
from .rooms import PRIVILEGED_ROLE

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def _strip_bearer(token: str) -> str:
    token = token.strip()
    if token.lower().startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX) :].strip()
    return token


@database_sync_to_async
def _get_verified_user_from_access_token(token: str) -> VerifiedUser:
    jwt_auth = JWTAuthentication()
    validated = jwt_auth.get_validated_token(token)
    user = jwt_auth.get_user(validated)

    role = PRIVILEGED_ROLE if getattr(user, "is_privileged", False) else user.role
    display_name = getattr(user, "display_name", "") or user.get_username()
    return VerifiedUser(user_id=str(user.pk), display_name=display_name, role=role)


class JWTTokenVerifier:
    """Turns a simplejwt access token into a ``VerifiedUser``.

    Invalid, expired and unknown-user tokens yield ``None``; so does any
    unexpected failure (database down, etc.), which is logged.
    """

    async def verify(self, token: str) -> VerifiedUser | None:
        token = _strip_bearer(token or "")
        if not token:
            return None
        try:
            return await _get_verified_user_from_access_token(token)
        except TokenError as exc:
            logger.info("Rejected realtime token: %s", exc)
        except AuthenticationFailed as exc:  # user not found / inactive, etc.
            logger.info("Rejected realtime token: %s", exc.detail)
        except Exception:  # noqa: BLE001 - verifier must answer, not raise
            logger.exception("Realtime token verification error")
        return None
