#!/usr/bin/env python3
"""Send a signed Zoom webhook to a running deployment.

Checks the receiver end to end without a real Zoom recording: the handshake
check exercises URL validation, the transcript check posts a
recording.transcript_completed event whose accepted response proves the
signature and payload were accepted.

Usage:
    python scripts/send_test_webhook.py \
        --backend-url https://api.example.com \
        --secret "$ZOOM_WEBHOOK_SECRET_TOKEN" \
        --download-url https://files.example.com/test.vtt

Exit code 0 if all checks pass, 1 if any fail.
"""

import argparse
import hashlib
import hmac
import json
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Tuple

import httpx

from src.clarity.core.security import compute_signature

TIMEOUT = 15.0
WEBHOOK_PATH = "/api/v1/webhooks/zoom"


def _signed_headers(secret: str, raw_body: bytes) -> dict:
    timestamp = str(int(time.time()))
    return {
        "content-type": "application/json",
        "x-zm-request-timestamp": timestamp,
        "x-zm-signature": compute_signature(secret, timestamp, raw_body),
    }


def check_handshake(url: str, secret: str) -> Tuple[bool, str]:
    """Verify the URL validation challenge is answered with the right digest."""
    plain_token = uuid.uuid4().hex
    raw_body = json.dumps(
        {"event": "endpoint.url_validation", "payload": {"plainToken": plain_token}}
    ).encode("utf-8")
    expected = hmac.new(secret.encode(), plain_token.encode(), hashlib.sha256).hexdigest()
    try:
        response = httpx.post(url, content=raw_body, headers=_signed_headers(secret, raw_body), timeout=TIMEOUT)
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"

    if response.status_code != 200:
        return False, f"HTTP {response.status_code}"
    if response.json().get("encryptedToken") != expected:
        return False, "encryptedToken mismatch"
    return True, "Challenge answered"


def check_transcript_event(url: str, secret: str, download_url: str, topic: str) -> Tuple[bool, str]:
    """Post a transcript_completed event and expect it to be accepted."""
    start = datetime.now(timezone.utc).replace(microsecond=0)
    end = start + timedelta(minutes=5)
    body = {
        "event": "recording.transcript_completed",
        "event_ts": int(time.time() * 1000),
        "download_token": "test-download-token",
        "payload": {
            "account_id": "test-account",
            "object": {
                "id": 10000000000,
                "uuid": f"{uuid.uuid4().hex}==",
                "host_id": "test-host",
                "topic": topic,
                "host_email": "",
                "start_time": start.isoformat().replace("+00:00", "Z"),
                "duration": 5,
                "recording_files": [
                    {
                        "recording_start": start.isoformat().replace("+00:00", "Z"),
                        "recording_end": end.isoformat().replace("+00:00", "Z"),
                        "download_url": download_url,
                        "recording_type": "audio_transcript",
                        "file_type": "TRANSCRIPT",
                    }
                ],
            },
        },
    }
    raw_body = json.dumps(body).encode("utf-8")
    try:
        response = httpx.post(url, content=raw_body, headers=_signed_headers(secret, raw_body), timeout=TIMEOUT)
    except httpx.HTTPError as exc:
        return False, f"HTTP error: {exc}"

    if response.status_code != 200:
        return False, f"HTTP {response.status_code}: {response.text[:200]}"
    return True, f"Accepted in {response.elapsed.total_seconds():.2f}s"


def print_results(results: list) -> None:
    """Print a formatted table of check results."""
    header = f"{'CHECK':<25} {'STATUS':<10} {'DETAIL'}"
    separator = "-" * 70
    print()
    print(separator)
    print(header)
    print(separator)
    for name, passed, detail in results:
        status = "PASS" if passed else "FAIL"
        print(f"{name:<25} {status:<10} {detail}")
    print(separator)
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Send signed Zoom webhooks to a deployment")
    parser.add_argument("--backend-url", required=True, help="Base URL of the backend API")
    parser.add_argument("--secret", required=True, help="Zoom webhook secret token")
    parser.add_argument(
        "--download-url",
        help="Transcript URL for the transcript_completed check (skipped if omitted)",
    )
    parser.add_argument(
        "--topic",
        default="Clarity System Test",
        help="Meeting topic for the test event",
    )
    args = parser.parse_args()

    url = args.backend_url.rstrip("/") + WEBHOOK_PATH
    results = []

    passed, detail = check_handshake(url, args.secret)
    results.append(("URL validation", passed, detail))

    if args.download_url:
        passed, detail = check_transcript_event(url, args.secret, args.download_url, args.topic)
        results.append(("Transcript completed", passed, detail))

    print_results(results)

    all_passed = all(passed for _, passed, _ in results)
    print("All checks passed." if all_passed else "Some checks FAILED.")
    sys.exit(0 if all_passed else 1)


if __name__ == "__main__":
    main()
