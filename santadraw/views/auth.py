from __future__ import annotations

from flask import Blueprint, jsonify
from flask.views import MethodView
from flask_login import login_user, logout_user, current_user
from flask_wtf.csrf import generate_csrf

from ..extensions import db
from ..models import User
from ..policies import LoginRequiredMixin
from ..security import hash_password, verify_password
from .errors import error_response
from .forms import request_data, text_field


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

MIN_PASSWORD_LENGTH = 8


def user_payload(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


class CsrfTokenView(MethodView):
    def get(self):
        return jsonify(csrf_token=generate_csrf())


class RegisterView(MethodView):
    def post(self):
        data = request_data()
        email = text_field(data, "email").strip().lower()
        name = text_field(data, "name").strip()
        password = text_field(data, "password")

        if not email or not name:
            return error_response("BadRequest", "Name and email are required.", 400)

        if len(password) < MIN_PASSWORD_LENGTH:
            return error_response("BadRequest", f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", 400)

        if User.query.filter_by(email=email).first():
            return error_response("Conflict", "That email is already registered.", 409)

        user = User(email=email, name=name, password_hash=hash_password(password))
        db.session.add(user)
        db.session.commit()

        login_user(user)
        return jsonify(user=user_payload(user)), 201


class LoginView(MethodView):
    def post(self):
        data = request_data()
        email = text_field(data, "email").strip().lower()
        password = text_field(data, "password")

        user = User.query.filter_by(email=email).first()
        if not user or not password or not verify_password(password, user.password_hash):
            return error_response("Unauthorized", "Invalid email or password.", 401)

        login_user(user)
        return jsonify(user=user_payload(user))


class LogoutView(MethodView):
    def post(self):
        if current_user.is_authenticated:
            logout_user()
        return jsonify(ok=True)


class MeView(LoginRequiredMixin):
    def get(self):
        return jsonify(user=user_payload(current_user))


auth_bp.add_url_rule("/csrf-token", view_func=CsrfTokenView.as_view("csrf_token"), methods=["GET"])
auth_bp.add_url_rule("/register", view_func=RegisterView.as_view("register"), methods=["POST"])
auth_bp.add_url_rule("/login", view_func=LoginView.as_view("login"), methods=["POST"])
auth_bp.add_url_rule("/logout", view_func=LogoutView.as_view("logout"), methods=["POST"])
auth_bp.add_url_rule("/me", view_func=MeView.as_view("me"), methods=["GET"])
