import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, Request, status

from startronics.domain.lifecycle.policies import Actor
from startronics.domain.lifecycle.statuses import Role
from startronics.domain.profiles import service as profiles_service
from startronics.infra.auth import decode_access_token
from startronics.infra.logging import update_log_context

logger = logging.getLogger(__name__)

LOGIN_REQUIRED = "Please login"
ACCESS_DENIED = "Access denied"


@dataclass
class Identity:
    user_id: uuid.UUID
    role: Role
    email: str | None = None

    @property
    def actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=LOGIN_REQUIRED,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _get_bearer_token(request: Request) -> str | None:
    authorization: str | None = request.headers.get("Authorization")
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


async def get_identity(request: Request) -> Identity:
    cached = getattr(request.state, "identity", None)
    if cached is not None:
        return cached

    token = _get_bearer_token(request)
    if not token:
        raise _unauthorized()

    app_settings = request.app.state.app_settings
    try:
        payload = decode_access_token(
            token,
            app_settings.jwt_secret,
            audience=app_settings.jwt_audience,
            issuer=app_settings.auth_issuer,
        )
    except jwt.InvalidTokenError as exc:
        logger.info("access_token_invalid", extra={"extra": {"reason": type(exc).__name__}})
        raise _unauthorized() from exc

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError as exc:
        logger.info("access_token_subject_invalid")
        raise _unauthorized() from exc

    async with request.app.state.db_session_factory() as session:
        role = await profiles_service.resolve_role(session, user_id)

    identity = Identity(user_id=user_id, role=role, email=payload.get("email"))
    request.state.identity = identity
    update_log_context(user_id=str(user_id), role=role.value)
    return identity


def require_role(*roles: Role) -> Callable[..., Awaitable[Identity]]:
    allowed = frozenset(roles)

    async def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in allowed:
            logger.info(
                "access_denied",
                extra={"extra": {"role": identity.role.value, "allowed": sorted(role.value for role in allowed)}},
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED)
        return identity

    return dependency


require_customer = require_role(Role.customer)
require_technician = require_role(Role.technician)
require_admin = require_role(Role.admin)
