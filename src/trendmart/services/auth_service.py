import hmac
from datetime import timedelta
from typing import Any, Dict, Tuple

import bcrypt
import jwt
from sqlalchemy.exc import SQLAlchemyError

from trendmart.core.config import SecurityConfig
from trendmart.core.exceptions import (
    BaseAPIException, ConflictError, DatabaseError, ExternalServiceError,
    ForbiddenError, UnauthorizedError, ValidationError,
)
from trendmart.db import Database
from trendmart.models.user import User, UserRole
from trendmart.repositories.user_repository import UserRepository
from trendmart.schemas.auth_schemas import LoginRequest, RegistrationOtpRequest, VerifyOtpRequest
from trendmart.utils.date_utils import DateUtils
from trendmart.utils.validators import ValidationUtils
import logging

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


class AuthService:
    """
    Customer registration, login and bearer tokens

    Responsibilities:
    - Email one-time codes for sign-up and verify them
    - Check credentials and role on login
    - Issue and decode JWTs
    """

    def __init__(self, database: Database, security_config: SecurityConfig, notifier):
        self.db = database
        self.security = security_config
        self.notifier = notifier

    def request_registration_otp(self, request: RegistrationOtpRequest) -> None:
        """
        Start (or restart) a customer sign-up.

        Business Rules:
        - A verified account with the same email blocks registration
        - An unverified account is refreshed with the new details and code
        """
        logger.info(f"Registration OTP requested for {request.email}")
        otp = ValidationUtils.generate_otp()
        try:
            with self.db.transaction() as session:
                users = UserRepository(session)
                user = users.get_by_email(request.email)
                if user is not None and user.is_verified:
                    raise ConflictError("An account with this email already exists", "email")

                if user is None:
                    user = users.add(User(email=request.email, role=UserRole.CUSTOMER.value))
                user.full_name = request.full_name.strip()
                user.phone_number = request.phone_number
                user.password_hash = self.hash_password(request.password)
                user.otp_secret = otp
                user.otp_expires_at = DateUtils.create_expiry_time(self.security.otp_ttl_minutes)
                users.flush("REGISTER")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error registering {request.email}: {str(e)}")
            raise DatabaseError(f"Failed to register user: {str(e)}", "REGISTER")

        try:
            self.notifier.send_otp(request.email, otp, self.security.otp_ttl_minutes)
        except Exception as e:
            logger.error(f"Failed to send OTP email to {request.email}: {str(e)}")
            raise ExternalServiceError("email", "Could not send the verification email. Please try again.")

    def verify_registration_otp(self, request: VerifyOtpRequest) -> Tuple[str, User]:
        try:
            with self.db.transaction() as session:
                users = UserRepository(session)
                user = users.get_by_email(request.email)
                if user is None or user.is_verified or not user.otp_secret:
                    raise ValidationError("No pending verification for this email")
                if not hmac.compare_digest(user.otp_secret, request.otp):
                    logger.warning(f"Wrong OTP submitted for {request.email}")
                    raise ValidationError("Invalid verification code")
                if user.otp_expires_at is None or DateUtils.is_expired(user.otp_expires_at):
                    raise ValidationError("Verification code has expired")

                user.email_verified_at = DateUtils.now_utc()
                user.otp_secret = None
                user.otp_expires_at = None
                users.flush("VERIFY_OTP")
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error verifying {request.email}: {str(e)}")
            raise DatabaseError(f"Failed to verify user: {str(e)}", "VERIFY_OTP")

        logger.info(f"User {user.id} verified their email")
        return self.issue_token(user), user

    def login(self, request: LoginRequest) -> Tuple[str, User]:
        try:
            with self.db.session() as session:
                user = UserRepository(session).get_by_email(request.email)
        except SQLAlchemyError as e:
            logger.error(f"Database error during login for {request.email}: {str(e)}")
            raise DatabaseError(f"Failed to log in: {str(e)}", "LOGIN")

        if user is None or not self.check_password(request.password, user.password_hash):
            logger.warning(f"Failed login for {request.email}")
            raise UnauthorizedError("Invalid email or password")
        if user.role != request.role.value:
            raise ForbiddenError(f"This account cannot sign in as {request.role.value}")
        if not user.is_verified:
            raise ForbiddenError("Please verify your email before logging in")

        logger.info(f"User {user.id} logged in as {user.role}")
        return self.issue_token(user), user

    def issue_token(self, user: User) -> str:
        now = DateUtils.now_utc()
        payload = {
            "sub": str(user.id),
            "role": user.role,
            "iat": now,
            "exp": now + timedelta(hours=self.security.jwt_expiration_hours),
        }
        return jwt.encode(payload, self.security.jwt_secret_key, algorithm=self.security.jwt_algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Returns {"user_id": int, "role": str}; raises UnauthorizedError otherwise"""
        try:
            payload = jwt.decode(
                token,
                self.security.jwt_secret_key,
                algorithms=[self.security.jwt_algorithm],
                options={"require": ["sub", "exp"]},
            )
            return {"user_id": int(payload["sub"]), "role": payload.get("role")}
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token has expired")
        except (jwt.InvalidTokenError, ValueError):
            raise UnauthorizedError("Invalid token")

    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.security.password_hash_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def check_password(password: str, password_hash: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            return False
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
