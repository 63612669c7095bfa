"""
Authentication and authorization utilities.

Provides password hashing, JWT token creation/validation, identity resolution
and role checks, plus FastAPI dependencies for protecting endpoints.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .database import get_db
from .config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from .exceptions import IdentityUnresolvedError, PermissionDeniedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_ROLE = "user"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Security scheme for JWT bearer tokens
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The hashed password to compare against

    Returns:
        True if the password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password for secure storage.

    Args:
        password: The plain text password to hash

    Returns:
        The hashed password
    """
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing the claims to encode in the token
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def create_token_for_user(user: models.User) -> str:
    """Issue an access token carrying the user's id, username and role."""
    return create_access_token(
        data={"sub": str(user.id), "username": user.username, "role": user.role}
    )


def authenticate_user(db: Session, username: str, password: str) -> Optional[models.User]:
    """
    Authenticate a user by username and password.

    Args:
        db: Database session
        username: Login name
        password: Plain text password to verify

    Returns:
        User object if authentication succeeds, None otherwise
    """
    user = crud.get_user_by_username(db, username)
    if not user:
        logger.warning(f"Login failed: unknown user '{username}'")
        return None
    if not verify_password(password, user.password_hash):
        logger.warning(f"Login failed: wrong password for '{username}'")
        return None
    logger.info(f"Login: user '{username}' authenticated with role '{user.role}'")
    return user


def register_user(db: Session, user: schemas.UserRegister) -> Optional[models.User]:
    """
    Register a new account.

    New accounts get the ``user`` role, except the configured bootstrap
    username which is granted ``admin`` so the first administrator can be
    created without touching the database.

    Args:
        db: Database session
        user: Registration data

    Returns:
        Created User object, or None if the username is taken
    """
    if crud.get_user_by_username(db, user.username):
        return None
    role = ADMIN_ROLE if user.username == config.ADMIN_USERNAME else USER_ROLE
    db_user = crud.create_user(
        db,
        username=user.username,
        full_name=user.full_name,
        password_hash=get_password_hash(user.password),
        role=role,
    )
    logger.info(f"Registered user '{db_user.username}' with role '{role}'")
    return db_user


def resolve_current_identity(token: Optional[str], db: Session) -> Optional[models.User]:
    """
    Resolve the user behind a bearer token.

    Args:
        token: Encoded JWT, or None when no credentials were sent
        db: Database session

    Returns:
        The active User the token belongs to, or None if the token is
        missing, invalid or expired, or the user is gone or inactive
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id_str: str = payload.get("sub")
        if user_id_str is None:
            logger.error("No 'sub' claim in token")
            return None
        token_data = schemas.TokenData(
            user_id=int(user_id_str),
            username=payload.get("username"),
            role=payload.get("role"),
        )
    except (JWTError, ValueError) as e:
        logger.error(f"JWT validation error: {e}")
        return None

    user = crud.get_user(db, token_data.user_id)
    if user is None or not user.is_active:
        return None
    return user


def has_role(identity: Optional[models.User], role: str) -> bool:
    """
    Check whether ``identity`` holds ``role``.

    Args:
        identity: Resolved user, or None
        role: Role name to check

    Returns:
        True only for an active user with exactly that role
    """
    if identity is None or not identity.is_active:
        return False
    return identity.role == role


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> models.User:
    """
    FastAPI dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Authorization credentials (injected)
        db: Database session (injected)

    Returns:
        Current authenticated user

    Raises:
        IdentityUnresolvedError: token is missing or invalid, or the user is
            gone or inactive (401)
    """
    token = credentials.credentials if credentials else None
    user = resolve_current_identity(token, db)
    if user is None:
        raise IdentityUnresolvedError("Could not validate credentials")
    return user


def require_admin(current_user: models.User = Depends(get_current_user)) -> models.User:
    """
    FastAPI dependency to require admin role.

    Args:
        current_user: Current authenticated user (injected)

    Returns:
        Current user if they are an admin

    Raises:
        PermissionDeniedError: user is not an admin (403)
    """
    if not has_role(current_user, ADMIN_ROLE):
        logger.warning(f"Admin endpoint refused for user '{current_user.username}'")
        raise PermissionDeniedError(current_user.username, ADMIN_ROLE)
    return current_user
