import re
import secrets
import uuid
from typing import Dict, Optional

from email_validator import validate_email, EmailNotValidError


class ValidationUtils:
    """
    Validation helpers shared by the request schemas and services

    Features:
    - Email normalization
    - Phone number and postal code sanity checks
    - SKU format checks and generation
    - One-time code generation and format checks
    """

    PATTERNS = {
        'sku': re.compile(r'^[A-Z0-9][A-Z0-9\-]{2,63}$'),  # SKU: 3-64 chars, alphanumeric + hyphens
        'postal_code': re.compile(r'^[A-Za-z0-9][A-Za-z0-9\- ]{1,11}$'),
        'otp': re.compile(r'^\d{6}$'),
        'url': re.compile(r'^https?://[^\s<>"{}|\\^`[\]]+$'),
    }

    MIN_PASSWORD_LENGTH = 8
    MAX_PASSWORD_LENGTH = 72  # bcrypt ignores anything past 72 bytes
    MIN_PHONE_DIGITS = 7
    MAX_PHONE_DIGITS = 15
    SKU_PREFIX = "SKU"

    @classmethod
    def normalize_email(cls, email: str) -> str:
        """Normalize email address for consistent storage"""
        try:
            validated = validate_email(email, check_deliverability=False)
            return validated.normalized.lower()
        except EmailNotValidError:
            raise ValueError(f"Invalid email address: {email}")

    @classmethod
    def validate_phone_number(cls, phone: str) -> bool:
        """Accept local or international numbers: 7-15 digits, optional leading +"""
        stripped = phone.strip()
        if not stripped or re.search(r'[^\d\s\-+()]', stripped):
            return False
        digits_only = re.sub(r'\D', '', stripped)
        return cls.MIN_PHONE_DIGITS <= len(digits_only) <= cls.MAX_PHONE_DIGITS

    @classmethod
    def validate_postal_code(cls, postal_code: str) -> bool:
        return cls.PATTERNS['postal_code'].match(postal_code.strip()) is not None

    @classmethod
    def validate_password(cls, password: str) -> Dict[str, bool]:
        """Password strength checks; every value must be True"""
        return {
            'min_length': len(password) >= cls.MIN_PASSWORD_LENGTH,
            'max_length': len(password.encode("utf-8")) <= cls.MAX_PASSWORD_LENGTH,
            'has_letter': re.search(r'[A-Za-z]', password) is not None,
            'has_digit': re.search(r'\d', password) is not None,
        }

    @classmethod
    def validate_sku(cls, sku: str) -> bool:
        """Validate product SKU format"""
        return cls.PATTERNS['sku'].match(sku.upper()) is not None

    @classmethod
    def normalize_sku(cls, sku: Optional[str]) -> Optional[str]:
        """Uppercase and trim a SKU; blank means 'let the system assign one'"""
        if sku is None or not sku.strip():
            return None

        normalized = sku.strip().upper()

        if not cls.validate_sku(normalized):
            raise ValueError(f"Invalid SKU format: {sku}")

        return normalized

    @classmethod
    def generate_sku(cls) -> str:
        """Unique token used when a variant is created without a SKU"""
        return f"{cls.SKU_PREFIX}-{uuid.uuid4().hex[:12].upper()}"

    @classmethod
    def generate_otp(cls) -> str:
        """Six-digit one-time code, 100000-999999"""
        return str(100000 + secrets.randbelow(900000))

    @classmethod
    def validate_otp_format(cls, otp: str) -> bool:
        return cls.PATTERNS['otp'].match(otp or '') is not None

    @classmethod
    def validate_url(cls, url: str) -> bool:
        """Basic URL validation"""
        return cls.PATTERNS['url'].match(url) is not None
