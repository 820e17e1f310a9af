# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Require a game-store bearer session.

    Sets g.current_account (CatalogAccount) and g.auth_token.
    Returns 401 when the header is missing or the token is invalid/expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        account = session_service.validate_session(token)

        if not account:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_account = account
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function
