from typing import Optional

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from database import Database
from exceptions import AuthenticationError, AuthorizationError, InvalidCredentialsError
from logging_config import logger, set_user_id
from schemas import User
from security import verify_password
from sessions import SessionManager


# ===== Guards =====

def require_authenticated(user: Optional[User], message: str = "You must be logged in") -> User:
    if user is None:
        raise AuthenticationError(message)
    return user


def require_role(user: Optional[User], role: str, message: Optional[str] = None) -> User:
    user = require_authenticated(user)
    if user.role != role:
        raise AuthorizationError(message or f"{role.capitalize()} access required")
    return user


def require_ownership(user: Optional[User], owner_id: int, message: str = "You can only modify your own resources") -> User:
    user = require_authenticated(user)
    if user.id != owner_id:
        raise AuthorizationError(message)
    return user


def require_approved_organization(user: Optional[User]) -> User:
    user = require_role(user, "organization", "Only organizations can create campaigns")
    if not user.is_approved:
        raise AuthorizationError("Your organization is awaiting admin approval")
    return user


# ===== Dependencies =====

def get_db(request: Request) -> Database:
    return request.app.state.db


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(request.app.state.settings.SESSION_COOKIE_NAME)


async def get_optional_user(
    token: Optional[str] = Depends(get_session_token),
    db: Database = Depends(get_db),
    sessions: SessionManager = Depends(get_sessions),
) -> Optional[User]:
    """Principal behind the session cookie, if any"""
    user_id = sessions.resolve(token)
    if user_id is None:
        return None
    user = db.get_user(user_id)
    if user is None:
        # user vanished underneath a live session
        sessions.revoke(token)
        return None
    set_user_id(str(user.id))
    return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    return require_authenticated(user)


async def get_current_admin(user: Optional[User] = Depends(get_optional_user)) -> User:
    return require_role(user, "admin")


async def get_current_organization(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Organization allowed to run campaigns (approved by an admin)"""
    return require_approved_organization(user)


async def authenticate(db: Database, username: str, password: str) -> User:
    """
    Check a username/password pair. Raises InvalidCredentialsError for an
    unknown user and for a wrong password alike.
    """
    user = db.get_user_by_username(username)
    if user is None:
        logger.log_auth_event("login", False, username=username, reason="unknown user")
        raise InvalidCredentialsError()
    # scrypt is CPU-bound; keep it off the event loop
    if not await run_in_threadpool(verify_password, password, user.password_hash):
        logger.log_auth_event("login", False, username=username, reason="bad password")
        raise InvalidCredentialsError()
    return user
