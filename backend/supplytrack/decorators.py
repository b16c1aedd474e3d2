# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthError
from .services import token_service


def require_auth(f):
    """
    Require a bearer token and establish the acting user.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.auth_context: The full AuthContext (user + token claims)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, tampered or expired token
    - Token names a user that no longer exists
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"success": False, "error": "No token provided"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        try:
            context = token_service.authenticate(token)
        except AuthError as e:
            return jsonify({"success": False, "error": e.message}), 401

        g.current_user = context.user
        g.auth_context = context

        return f(*args, **kwargs)

    return decorated_function
