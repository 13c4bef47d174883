from pydantic import BaseModel, Field, field_validator
from typing import Optional


class SignUpRequest(BaseModel):
    """Schema for creating an account with the password provider."""
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
    name: Optional[str] = Field(None, max_length=100)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class SignInRequest(BaseModel):
    """Schema for signing in with the password provider."""
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class TokenResponse(BaseModel):
    """Access token issued after sign-up or sign-in."""
    access_token: str
    token_type: str = "bearer"
    user_id: str
