from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, g, jsonify, request

from models import db
from models.coach import Coach
from models.user import User
from security.password import MIN_PASSWORD_LENGTH, hash_password, verify_password
from security.rbac import login_required
from security.session import clear_session_cookie, close_session, open_session, set_session_cookie
from services.errors import ValidationError
from utils.audit import log_event
from utils.seed import ensure_role

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

SELF_SERVICE_ROLES = ("CLIENT", "COACH")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _parse_rate(value) -> Decimal:
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("hourlyRate must be a number")
    if not rate.is_finite() or rate < 0:
        raise ValidationError("hourlyRate must be zero or more")
    return rate.quantize(Decimal("0.01"))


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("fullName") or "").strip() or None
    role_name = (data.get("role") or "CLIENT").strip().upper()

    if not _is_valid_email(email):
        raise ValidationError("Invalid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if role_name not in SELF_SERVICE_ROLES:
        raise ValidationError("role must be CLIENT or COACH")
    rate = _parse_rate(data.get("hourlyRate")) if role_name == "COACH" else None

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(status="error", message="Email already registered"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name)
    user.roles.append(ensure_role(role_name))
    db.session.add(user)
    db.session.flush()

    if role_name == "COACH":
        # coaches start pending until an admin approves them
        db.session.add(Coach(
            user_id=user.id,
            hourly_rate=rate,
            status="pending",
            booking_cutoff_hours=current_app.config.get("DEFAULT_BOOKING_CUTOFF_HOURS", 12),
        ))

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role_name})
    return jsonify(id=user.id, role=role_name), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(status="error", message="Invalid credentials"), 401

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return set_session_cookie(jsonify(message="Login OK"), open_session(user)), 200


@auth_bp.get("/me")
@login_required
def me():
    coach = g.coach
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        fullName=g.user.full_name,
        roles=sorted(g.user.role_names),
        coachId=coach.id if coach else None,
        coachStatus=coach.status if coach else None,
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    close_session()
    log_event("LOGOUT", user_id=g.user.id)
    return clear_session_cookie(jsonify(message="Logged out")), 200
