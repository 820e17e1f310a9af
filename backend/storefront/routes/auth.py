# Overview: Flask API routes for admin login and game-store accounts.

from flask import Blueprint, request, jsonify, g

from ..services import auth_service, session_service
from ..services.auth_service import RegistrationError
from ..validation import require_keys, ValidationError
from ..decorators import require_auth
from storefront.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/login")
def admin_login():
    """Back-office login. Body: {username, password} -> {success, message}."""
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return jsonify({"success": False, "message": "username and password required"}), 400

    user = auth_service.authenticate_user(username, password)
    if not user:
        return jsonify({"success": False, "message": "Usuario o contraseña incorrectos"}), 401

    return jsonify({"success": True, "message": "Login exitoso", "user": user.to_dict()}), 200


@auth_bp.post("/api/auth/register")
def register():
    """Body: {name, email, password}. Email is unique (case-insensitive)."""
    data = request.get_json(silent=True) or {}
    try:
        require_keys(data, allowed={"name", "email", "password"}, required={"name", "email", "password"})
        account = auth_service.register_account(
            name=data["name"],
            email=data["email"],
            password=data["password"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Usuario registrado exitosamente", "account": account.to_dict()}), 201


@auth_bp.post("/api/auth/login")
def login():
    """Body: {email, password} -> {token, expires_at}."""
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    account = auth_service.authenticate_account(email, password)
    if not account:
        return jsonify({"error": "Credenciales inválidas"}), 401

    session, token = session_service.create_session(account.id)
    return jsonify({"token": token, "expires_at": to_utc_z(session.expires_at)}), 200


@auth_bp.get("/api/auth/me")
@require_auth
def me():
    return jsonify({"account": g.current_account.to_dict()}), 200


@auth_bp.post("/api/auth/logout")
@require_auth
def logout():
    session_service.revoke_session(g.auth_token)
    return jsonify({"message": "Logged out successfully"}), 200
