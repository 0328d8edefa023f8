"""Auth request/response schemas."""

from pydantic import BaseModel, Field, model_validator

from forum.models import UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Names never contain "@", so name-or-email login stays unambiguous
NAME_PATTERN = r"^[^@]+$"


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100, pattern=NAME_PATTERN)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=64)
    password_confirm: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirm:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """``username`` accepts either the account name or its email."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    status: str = "success"
    role: UserRole


class ForgotPasswordRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=64)
    new_password_confirm: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.new_password_confirm:
            raise ValueError("Passwords do not match")
        return self


class MessageResponse(BaseModel):
    status: str = "success"
    message: str


class ProviderInfo(BaseModel):
    name: str
    display_name: str
    pkce: bool


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
