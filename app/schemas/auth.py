"""Authentication schemas."""

from pydantic import BaseModel, EmailStr, Field

from app.schemas.users import StaffRole, UserResponse


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the web client")


class SignUpRequest(BaseModel):
    """Email/password account registration."""

    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class SignInRequest(BaseModel):
    """Email/password sign-in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RoleSelectionRequest(BaseModel):
    """Claim a staff role by presenting its security code."""

    role: StaffRole
    security_code: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Login response with tokens and user info."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
