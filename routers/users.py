from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from auth import generate_token, get_current_user, hash_password, verify_password
from backend import RedisBackend, get_backend
from logging_config import get_logger
from schemas.users import AuthResponse, LoginRequest, RegisterUserRequest, UserResponse

logger = get_logger(__name__)

users_router = APIRouter(prefix="/api/user", tags=["users"])


@users_router.post("", response_model=AuthResponse, status_code=201)
def register_user(body: RegisterUserRequest, backend: RedisBackend = Depends(get_backend)):
    logger.info(f"Registration request for {body.email}")
    if not body.name or not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Please enter all the required fields")

    try:
        if backend.get_user_by_email(body.email):
            logger.warning(f"Registration failed: {body.email} already registered")
            raise HTTPException(status_code=400, detail="User with this email already exists")
        user = backend.create_user(body.name, body.email, hash_password(body.password), body.pic)
    except HTTPException:
        raise
    except ValueError as e:
        # Lost a race with a concurrent registration of the same email
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error registering user {body.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create the user")

    return {**user, "token": generate_token(user["_id"])}


@users_router.post("/login", response_model=AuthResponse)
def auth_user(body: LoginRequest, backend: RedisBackend = Depends(get_backend)):
    logger.info(f"Login request for {body.email}")
    try:
        user = backend.get_user_by_email(body.email, with_password=True) if body.email else None
    except Exception as e:
        logger.error(f"Error loading user {body.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to authenticate")

    if not user or not body.password or not verify_password(body.password, user.get("password")):
        logger.warning(f"Login failed for {body.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    public = backend.public_user(user)
    return {**public, "token": generate_token(user["_id"])}


@users_router.get("", response_model=List[UserResponse])
def all_users(
    search: Optional[str] = Query(None, description="Case-insensitive match on name or email"),
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    try:
        return backend.search_users(search, exclude_id=current_user["_id"])
    except Exception as e:
        logger.error(f"Error searching users for {search!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to search users")


@users_router.get("/{user_id}", response_model=UserResponse)
def get_user_by_id(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    backend: RedisBackend = Depends(get_backend),
):
    try:
        user = backend.get_user(user_id)
    except Exception as e:
        logger.error(f"Error loading user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load user")
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
