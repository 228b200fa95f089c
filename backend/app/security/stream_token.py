"""Short-lived signed tokens for EventSource (query-param) authentication.

Browsers cannot set an Authorization header on EventSource, so the client
first asks POST /api/auth/stream-token for a token bound to one session's
stream path, then opens `<path>?token=<token>`.

Token format: b64url("v1:<path>:<expires_at>") + "." + b64url(hmac_sha256)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
import time

_TOKEN_VERSION = "v1"

STREAM_PATH = re.compile(r"^/api/sessions/[A-Za-z0-9_-]+/stream$")


def is_stream_path(path: str) -> bool:
    """True for the GET endpoints that accept a ?token= query parameter."""
    return bool(STREAM_PATH.match(path))


def stream_path_for(session_id: str) -> str:
    return f"/api/sessions/{session_id}/stream"


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(raw: str) -> bytes:
    return base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))


def _sign(api_key: str, payload: bytes) -> bytes:
    return hmac.new(api_key.encode("utf-8"), payload, hashlib.sha256).digest()


def issue_stream_token(*, api_key: str, path: str, ttl_seconds: int = 120, now: int | None = None) -> str:
    """Sign a token for *path* that expires ttl_seconds from now."""
    if not is_stream_path(path):
        raise ValueError(f"Not a stream path: {path}")
    issued_at = int(now if now is not None else time.time())
    payload = f"{_TOKEN_VERSION}:{path}:{issued_at + max(1, ttl_seconds)}".encode("utf-8")
    return f"{_b64url_encode(payload)}.{_b64url_encode(_sign(api_key, payload))}"


def verify_stream_token(*, token: str, api_key: str, path: str, now: int | None = None) -> bool:
    payload_b64, sep, sig_b64 = token.partition(".")
    if not sep:
        return False
    try:
        payload = _b64url_decode(payload_b64)
        signature = _b64url_decode(sig_b64)
    except (binascii.Error, ValueError):
        return False
    if not hmac.compare_digest(signature, _sign(api_key, payload)):
        return False

    # Paths never contain ":" so the payload splits into exactly three parts
    try:
        version, token_path, expires_at = payload.decode("utf-8").split(":")
        expires = int(expires_at)
    except ValueError:
        return False
    if version != _TOKEN_VERSION or token_path != path:
        return False
    return int(now if now is not None else time.time()) <= expires
