from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from passlib.context import CryptContext


pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    return pwd_context.verify(password, stored_hash)


# ---------------------------------------------------------------------------
# Reveal links
#
# Each participant reveals their recipient through a private link. The link
# carries a Fernet token of "event_id:participant_id", so ids cannot be guessed
# or swapped without the key.
# ---------------------------------------------------------------------------


def _reveal_fernet() -> Fernet:
    """Keyed by REVEAL_TOKEN_KEY, or derived from SECRET_KEY."""
    explicit = (current_app.config.get("REVEAL_TOKEN_KEY") or "").strip()
    if explicit:
        # Expect a urlsafe base64-encoded 32-byte key.
        return Fernet(explicit.encode("utf-8"))

    # Derived so links keep working across restarts.
    secret = (current_app.config.get("SECRET_KEY") or "").encode("utf-8")
    digest = hashlib.sha256(b"santadraw-reveal|" + secret).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def make_reveal_token(event_id: int, participant_id: int) -> str:
    token = _reveal_fernet().encrypt(f"{int(event_id)}:{int(participant_id)}".encode("utf-8"))
    return token.decode("utf-8")


def read_reveal_token(token: str) -> tuple[int, int]:
    """Token -> (event_id, participant_id). Raises ValueError on failure."""
    try:
        raw = _reveal_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
        event_id, participant_id = raw.split(":")
        return int(event_id), int(participant_id)
    except (InvalidToken, ValueError, TypeError) as e:
        raise ValueError("Invalid reveal token") from e
