"""Caller identity passed explicitly into every orchestrator call."""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, request
from itsdangerous import BadSignature, URLSafeTimedSerializer

ROLES = ("customer", "stylist", "admin")

_TOKEN_SALT = "auth-token"


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_stylist(self) -> bool:
        return self.role == "stylist"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_token(identity: Identity) -> str:
    """Sign an identity the same way the auth service does."""
    return _serializer().dumps({"user_id": identity.user_id, "role": identity.role})


def identity_from_request() -> Identity | None:
    """Extract and validate the caller from the Authorization header.

    Returns None if the header is missing, the token is invalid or expired, or
    the payload is not a usable identity.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]  # Remove "Bearer " prefix

    try:
        payload = _serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except BadSignature:
        # Invalid or expired token (SignatureExpired is a BadSignature)
        return None

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    role = payload.get("role") if isinstance(payload, dict) else None
    if not isinstance(user_id, int) or role not in ROLES:
        return None
    return Identity(user_id=user_id, role=role)
