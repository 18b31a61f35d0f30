from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from backend import RedisBackend, get_backend
from constants import JWT_ALGORITHM, JWT_SECRET, TOKEN_EXPIRE_DAYS
from logging_config import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


def generate_token(user_id: str) -> str:
    expires_at = datetime.now(timezone.utc) + timedelta(days=TOKEN_EXPIRE_DAYS)
    return jwt.encode({"id": user_id, "exp": expires_at}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> str:
    """Return the user id carried by a token, or raise ValueError."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    user_id = payload.get("id")
    if not user_id:
        raise ValueError("Invalid token")
    return user_id


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    backend: RedisBackend = Depends(get_backend),
) -> dict:
    """Authenticate a REST request from its bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    try:
        user_id = decode_token(credentials.credentials)
    except ValueError:
        logger.warning("Rejected request with invalid token")
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    try:
        user = backend.get_user(user_id)
    except Exception as e:
        logger.error(f"Error loading user {user_id} for auth: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to authenticate")
    if user is None:
        logger.warning(f"Rejected token for unknown user {user_id}")
        raise HTTPException(status_code=401, detail="Not authorized, user not found")
    return user
