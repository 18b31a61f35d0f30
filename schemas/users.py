from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class RegisterUserRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    pic: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: Optional[str] = None
    email: Optional[str] = None
    pic: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

class AuthResponse(UserResponse):
    token: str

class SenderResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: Optional[str] = None
    pic: Optional[str] = None
    email: Optional[str] = None
