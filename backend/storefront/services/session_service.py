# Overview: Bearer sessions for game-store accounts.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes, hex encoded)
- Tokens hashed with SHA-256 before storage; only the client sees plaintext
- Absolute timeout of SESSION_HOURS (no idle timeout)
- Revocable
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, CatalogAccount
from storefront.time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(account_id: int) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    now = utcnow()
    hours = current_app.config.get("SESSION_HOURS", 1)

    plaintext_token = generate_token()
    session = SessionToken(
        account_id=account_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> CatalogAccount | None:
    """Account owning a live (unrevoked, unexpired) token, else None."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None
    if session.expires_at < utcnow():
        return None
    return session.account


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return False
    session.is_revoked = True
    db.session.commit()
    return True
