import logging
from functools import wraps

from flask import jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import IntegrityError

from pickem import db, limiter, login_manager
from pickem.errors import Conflict, ValidationFailed
from pickem.forms.auth import LoginForm, RegistrationForm, sanitize_input
from pickem.models import User
from pickem.routes.auth import bp

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return (
        jsonify({"success": False, "error": "Unauthorized", "code": "unauthorized"}),
        401,
    )


def admin_required(f):
    """Require an authenticated site admin"""

    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            return (
                jsonify(
                    {
                        "success": False,
                        "error": "Admin privileges required",
                        "code": "forbidden",
                    }
                ),
                403,
            )
        return f(*args, **kwargs)

    return decorated_function


@bp.route("/csrf-token")
def csrf_token():
    return jsonify({"success": True, "csrf_token": generate_csrf()})


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    form = RegistrationForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    user = User(
        username=form.username.data.strip(),
        email=form.email.data.strip().lower(),
        name=sanitize_input(form.name.data) or None,
    )
    user.set_password(form.password.data)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Username or email already registered")

    login_user(user)
    logger.info(f"New user registered: {user.username}")
    return jsonify({"success": True, "user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm.from_json()
    if not form.validate():
        raise ValidationFailed(form.first_error())

    user = User.find_by_login(form.username.data.strip())

    if not user or not user.check_password(form.password.data):
        logger.info(f"Failed login attempt for {form.username.data}")
        return (
            jsonify(
                {
                    "success": False,
                    "error": "Invalid username or password",
                    "code": "invalid_credentials",
                }
            ),
            401,
        )

    if not user.is_active:
        return (
            jsonify(
                {
                    "success": False,
                    "error": "Your account has been deactivated. Please contact support.",
                    "code": "account_inactive",
                }
            ),
            403,
        )

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()

    return jsonify({"success": True, "user": user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True, "message": "Logged out"})


@bp.route("/session")
@login_required
def session_info():
    return jsonify({"success": True, "user": current_user.to_dict()})
