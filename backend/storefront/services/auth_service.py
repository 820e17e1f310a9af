# Overview: Password hashing and credential checks for back-office users and game-store accounts.

"""
Authentication Service

- Passwords hashed with bcrypt (cost factor 12); plaintext is never stored.
- Back-office users log into the admin panel; game-store accounts get a
  bearer session from session_service.
- Emails are trimmed and lower-cased before storage and lookup.
"""

import bcrypt
from ..extensions import db
from ..models import User, CatalogAccount
from ..validation import ValidationError


class RegistrationError(Exception):
    """Raised when an account cannot be registered (e.g. email already taken)."""
    pass


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Returns True if password matches hash, False otherwise (including malformed hashes)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# =============================================================================
# BACK-OFFICE USERS
# =============================================================================

def create_user(username: str, password: str) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("username and password are required")
    if db.session.query(User).filter_by(username=username).first() is not None:
        raise RegistrationError(f"User {username} already exists")

    user = User(username=username, password_hash=hash_password(password), is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def authenticate_user(username: str, password: str) -> User | None:
    """Active user whose password matches, else None."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user


# =============================================================================
# GAME-STORE ACCOUNTS
# =============================================================================

def register_account(*, name: str, email: str, password: str) -> CatalogAccount:
    name = (name or "").strip()
    email = normalize_email(email)
    if not name or not email or not password:
        raise ValidationError("name, email and password are required")
    if "@" not in email:
        raise ValidationError("email is not valid")
    if db.session.query(CatalogAccount).filter_by(email=email).first() is not None:
        raise RegistrationError("El usuario ya existe")

    account = CatalogAccount(name=name, email=email, password_hash=hash_password(password))
    db.session.add(account)
    db.session.commit()
    return account


def authenticate_account(email: str, password: str) -> CatalogAccount | None:
    account = db.session.query(CatalogAccount).filter_by(email=normalize_email(email)).first()
    if account is None or not verify_password(password or "", account.password_hash):
        return None
    return account
