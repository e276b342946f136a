import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app, g

from models import db
from models.session import Session
from models.user import User

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: int, lifetime_seconds: int = None) -> str:
    """
    Creates a server-side session and returns the RAW token.
    Only the hash is stored in DB.

    Token issuance normally lives in the auth service; this is what it
    (and the `issue-token` CLI command) calls.
    """
    raw_token = secrets.token_urlsafe(32)

    if lifetime_seconds is None:
        lifetime_seconds = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)

    row = Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime_seconds),
    )
    db.session.add(row)
    db.session.commit()
    return raw_token

def _token_from_request():
    prefix = current_app.config.get("AUTH_HEADER_PREFIX", "Bearer")
    header = request.headers.get("Authorization", "")
    if header.startswith(prefix + " "):
        return header[len(prefix) + 1:].strip() or None

    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "adslot_session")
    return request.cookies.get(cookie_name)

def get_session_from_request():
    raw_token = _token_from_request()
    if not raw_token:
        return None

    sess = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .first()
    )
    if not sess or sess.expires_at <= datetime.utcnow():
        return None
    return sess

def load_current_user():
    sess = get_session_from_request()
    g.session = sess
    g.user = db.session.get(User, sess.user_id) if sess else None
