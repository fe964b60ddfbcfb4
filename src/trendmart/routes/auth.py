import logging

from flask import Blueprint

from trendmart.routes.utils import get_service, parse_body, success_response
from trendmart.schemas.auth_schemas import (
    AuthTokenResponse, LoginRequest, RegistrationOtpRequest, UserResponse, VerifyOtpRequest,
)
from trendmart.services.auth_service import AuthService

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register/otp", methods=["POST"])
def request_registration_otp():
    """Create or refresh an unverified account and email a one-time code."""
    body = parse_body(RegistrationOtpRequest)
    get_service(AuthService).request_registration_otp(body)
    return success_response(
        {"email": body.email}, "Verification code sent. Check your inbox.", 202
    )


@auth_bp.route("/register/verify", methods=["POST"])
def verify_registration_otp():
    body = parse_body(VerifyOtpRequest)
    token, user = get_service(AuthService).verify_registration_otp(body)
    return success_response(
        AuthTokenResponse(token=token, user=UserResponse.model_validate(user)),
        "Email verified.",
        201,
    )


@auth_bp.route("/login", methods=["POST"])
def login():
    body = parse_body(LoginRequest)
    token, user = get_service(AuthService).login(body)
    return success_response(AuthTokenResponse(token=token, user=UserResponse.model_validate(user)))
