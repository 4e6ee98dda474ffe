# Overview: Service-layer operations for accounts; registration, login and profile edits.

"""
Account Service

WHY: Every order and payment belongs to a user. Uses bcrypt for password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Self-registration only ever creates subscribers; admins come from the CLI
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User, UserRole
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_NAME_LENGTH = 2
MIN_ADDRESS_LENGTH = 10


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed stored hash counts as a
    mismatch.
    """
    if not isinstance(password, str):
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def validate_name(name) -> str:
    name = (name or "").strip() if isinstance(name, str) else ""
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    return name


def validate_address(address) -> str:
    address = (address or "").strip() if isinstance(address, str) else ""
    if len(address) < MIN_ADDRESS_LENGTH:
        raise ValidationError(f"Address must be at least {MIN_ADDRESS_LENGTH} characters")
    return address


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    address: str | None = None,
    role: UserRole = UserRole.SUBSCRIBER,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: malformed name/email/address
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    name = validate_name(name)
    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise ValidationError("Valid email required")
    if address is not None:
        address = validate_address(address)

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("User already exists with this email")

    user = User(
        name=name,
        email=email,
        address=address,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_subscriber(*, name: str, email: str, password: str, address: str) -> User:
    """Public self-registration. Address is required for subscribers."""
    return create_user(
        name=name,
        email=email,
        password=password,
        address=validate_address(address),
        role=UserRole.SUBSCRIBER,
    )


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid and account active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_profile(user: User, *, name: str | None = None, address: str | None = None) -> User:
    """Update name and/or address. Omitted (None) fields stay unchanged."""
    if name is not None:
        user.name = validate_name(name)
    if address is not None:
        user.address = validate_address(address)
    db.session.commit()
    return user
