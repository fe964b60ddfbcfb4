from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from trendmart.models.user import UserRole
from trendmart.schemas.common_schemas import ORMModel
from trendmart.utils.validators import ValidationUtils


class _EmailMixin(BaseModel):
    email: str = Field(min_length=3, max_length=320)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return ValidationUtils.normalize_email(v)


class RegistrationOtpRequest(_EmailMixin):
    full_name: str = Field(min_length=1, max_length=200)
    password: str
    phone_number: Optional[str] = None

    @field_validator('password')
    @classmethod
    def check_password(cls, v):
        failed = [rule for rule, ok in ValidationUtils.validate_password(v).items() if not ok]
        if failed:
            raise ValueError(f"password fails: {', '.join(failed)}")
        return v

    @field_validator('phone_number')
    @classmethod
    def check_phone(cls, v):
        if v is not None and not ValidationUtils.validate_phone_number(v):
            raise ValueError('invalid phone number')
        return v


class VerifyOtpRequest(_EmailMixin):
    otp: str

    @field_validator('otp')
    @classmethod
    def check_otp(cls, v):
        if not ValidationUtils.validate_otp_format(v):
            raise ValueError('otp must be 6 digits')
        return v


class LoginRequest(_EmailMixin):
    password: str = Field(min_length=1)
    role: UserRole = UserRole.CUSTOMER


class UserResponse(ORMModel):
    id: int
    email: str
    full_name: str
    phone_number: Optional[str] = None
    role: UserRole
    email_verified_at: Optional[datetime] = None


class AuthTokenResponse(BaseModel):
    token: str
    user: UserResponse
