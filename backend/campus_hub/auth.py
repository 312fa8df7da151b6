"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens, the dependency
`get_current_user` that validates the bearer token and returns the
corresponding `User`, and `require_role` for role-gated endpoints.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies. Websocket handlers call
`user_from_token` and close the socket themselves.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import engine
from . import models, repositories

bearer_scheme = HTTPBearer()


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def user_from_token(token: str) -> models.User:
    """Resolve a raw token to its `User` or raise HTTPException(401)."""
    payload = decode_token(token)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    with Session(engine) as session:
        user = repositories.UserRepository(session).get(user_id)
        if not user:
            raise HTTPException(status_code=401, detail='user not found')
        return user


def get_current_user(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    return user_from_token(credentials.credentials)


def require_role(*roles: str):
    """Build a dependency that admits users holding any of `roles`."""
    def _dependency(user: models.User = Depends(get_current_user)) -> models.User:
        with Session(engine) as session:
            granted = set(repositories.RoleRepository(session).list_for_user(user.id))
        if not granted.intersection(roles):
            raise HTTPException(status_code=403, detail=f"requires role: {' or '.join(roles)}")
        return user
    return _dependency
