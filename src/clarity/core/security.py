"""Webhook and interaction request authentication.

Provides the HMAC primitives used by the Zoom webhook and Slack interaction
endpoints, the Zoom URL-validation handshake, and view-secret generation.

Both providers sign ``"v0:{timestamp}:{raw_body}"`` with HMAC-SHA256 and send
``"v0=" + hexdigest``. The raw request bytes are the only valid input: a
re-serialized JSON body is not guaranteed to be byte-identical.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

import structlog

logger = structlog.get_logger(__name__)

SIGNATURE_VERSION = "v0"
VIEW_SECRET_BYTES = 32

# Header names
ZOOM_SIGNATURE_HEADER = "x-zm-signature"
ZOOM_TIMESTAMP_HEADER = "x-zm-request-timestamp"
SLACK_SIGNATURE_HEADER = "x-slack-signature"
SLACK_TIMESTAMP_HEADER = "x-slack-request-timestamp"


# ── Signature Computation ─────────────────────────────────────────────────────


def compute_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    """Return ``v0=<hex HMAC-SHA256(secret, "v0:{timestamp}:{body}")>``."""
    base = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + raw_body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def _signatures_match(secret: str, timestamp: str, raw_body: bytes, signature: str) -> bool:
    expected = compute_signature(secret, timestamp, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


# ── Zoom ──────────────────────────────────────────────────────────────────────


def verify_zoom_signature(
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None,
    secret: str,
) -> bool:
    """Verify a Zoom webhook delivery.

    Fails closed: a missing header or an unconfigured secret is a rejection.
    """
    if not secret:
        logger.error("zoom.webhook_secret_not_configured")
        return False
    if not signature or not timestamp:
        logger.warning("zoom.signature_headers_missing")
        return False
    if not _signatures_match(secret, timestamp, raw_body, signature):
        logger.warning("zoom.signature_mismatch")
        return False
    return True


def build_url_validation_response(plain_token: str, secret: str) -> dict[str, str]:
    """Answer Zoom's ``endpoint.url_validation`` challenge.

    Returns the plain token alongside its HMAC-SHA256 hex digest under the
    webhook secret token.
    """
    encrypted = hmac.new(
        secret.encode("utf-8"),
        plain_token.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return {"plainToken": plain_token, "encryptedToken": encrypted}


# ── Slack ─────────────────────────────────────────────────────────────────────


def verify_slack_signature(
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None,
    secret: str,
    now: float | None = None,
    max_age_seconds: int = 300,
) -> bool:
    """Verify a Slack interaction request, rejecting replays.

    Requests whose timestamp is older than ``max_age_seconds`` are rejected
    even when the signature is valid.
    """
    if not secret:
        logger.error("slack.signing_secret_not_configured")
        return False
    if not signature or not timestamp:
        logger.warning("slack.signature_headers_missing")
        return False

    try:
        request_ts = int(timestamp)
    except ValueError:
        logger.warning("slack.timestamp_invalid", timestamp=timestamp)
        return False

    current = time.time() if now is None else now
    if request_ts < int(current) - max_age_seconds:
        logger.warning("slack.timestamp_too_old", timestamp=timestamp)
        return False

    if not _signatures_match(secret, timestamp, raw_body, signature):
        logger.warning("slack.signature_mismatch")
        return False
    return True


# ── View Secrets ──────────────────────────────────────────────────────────────


def generate_view_secret() -> str:
    """Generate a random URL-safe capability token for read-only links."""
    return secrets.token_urlsafe(VIEW_SECRET_BYTES)


def view_secret_matches(expected: str | None, supplied: str) -> bool:
    """Constant-time comparison of a stored view secret with a supplied one."""
    if not expected:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
