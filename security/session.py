"""
Cookie sessions for clients, coaches and admins.

open_session() returns the raw token exactly once; only its SHA-256 is stored,
so a leaked database cannot be replayed as cookies.
"""
import hashlib
import secrets
from datetime import timedelta

from flask import current_app, request

from models import db
from models.session import Session
from utils.time_utils import utcnow


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config["AUTH_COOKIE_NAME"]


def open_session(user) -> str:
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    db.session.add(Session(
        user_id=user.id,
        token_hash=hash_token(raw_token),
        expires_at=utcnow() + timedelta(seconds=lifetime),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
    ))
    db.session.commit()
    return raw_token


def set_session_cookie(resp, raw_token: str):
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    return resp


def clear_session_cookie(resp):
    resp.delete_cookie(_cookie_name(), path="/")
    return resp


def resolve_session():
    """The live Session behind the request cookie, touched for idle tracking, or None."""
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return None

    sess = Session.query.filter_by(token_hash=hash_token(raw_token)).first()
    now = utcnow()
    if sess is None or not sess.is_live(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 20 * 60)):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def close_session() -> bool:
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=hash_token(raw_token)).first()
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True
