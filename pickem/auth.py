"""
Identity seam for the API.

Sign-in happens in the external auth provider; requests arrive carrying the
token it issued. This module only turns that token into a User.
"""

from flask import jsonify

from pickem import db


def _token_from_header(header_value):
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def register_auth_loaders(login_manager):
    from pickem.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(request):
        token = _token_from_header(request.headers.get("Authorization"))
        return User.get_by_token(token)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401
