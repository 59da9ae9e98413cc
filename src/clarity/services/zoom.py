"""Async client for the Zoom REST API (verified attendance).

Uses a server-to-server OAuth app (``account_credentials`` grant) to list
the participants of a past meeting instance. The access token is cached
until shortly before it expires.

Attendance is an optional enrichment: missing credentials or any API error
degrade to an empty list and never fail the transcript pipeline.
"""

from __future__ import annotations

import time
from urllib.parse import quote

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

ZOOM_API_BASE_URL = "https://api.zoom.us/v2"
ZOOM_OAUTH_URL = "https://zoom.us/oauth/token"
TOKEN_EXPIRY_MARGIN_SECONDS = 60
PARTICIPANTS_PAGE_SIZE = 300

_zoom_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


def encode_meeting_uuid(meeting_uuid: str) -> str:
    """Encode a meeting UUID for use in a URL path.

    Zoom requires UUIDs that begin with ``/`` or contain ``//`` to be
    URL-encoded twice.
    """
    encoded = quote(meeting_uuid, safe="")
    if meeting_uuid.startswith("/") or "//" in meeting_uuid:
        encoded = quote(encoded, safe="")
    return encoded


class ZoomClient:
    """Zoom REST client for past-meeting participant lookup.

    Args:
        http_client: Shared httpx.AsyncClient.
        account_id: Zoom account id for the server-to-server OAuth app.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        account_id: str,
        client_id: str,
        client_secret: str,
        api_base_url: str = ZOOM_API_BASE_URL,
        oauth_url: str = ZOOM_OAUTH_URL,
    ) -> None:
        self._http = http_client
        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._api_base_url = api_base_url.rstrip("/")
        self._oauth_url = oauth_url
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self._account_id and self._client_id and self._client_secret)

    @_zoom_retry
    async def _fetch_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await self._http.post(
            self._oauth_url,
            params={"grant_type": "account_credentials", "account_id": self._account_id},
            auth=(self._client_id, self._client_secret),
        )
        response.raise_for_status()
        data = response.json()
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.info("zoom.access_token_refreshed", expires_in=expires_in)
        return self._access_token

    @_zoom_retry
    async def _get_participants_page(self, meeting_uuid: str, next_page_token: str) -> dict:
        token = await self._fetch_access_token()
        params = {"page_size": PARTICIPANTS_PAGE_SIZE}
        if next_page_token:
            params["next_page_token"] = next_page_token
        response = await self._http.get(
            f"{self._api_base_url}/past_meetings/{encode_meeting_uuid(meeting_uuid)}/participants",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json()

    async def get_participant_emails(self, meeting_uuid: str) -> list[str]:
        """Distinct, non-empty participant emails for a past meeting instance.

        Returns an empty list when credentials are absent or on any error.
        """
        if not self.configured:
            logger.info("zoom.attendance_skipped_no_credentials")
            return []

        emails: dict[str, None] = {}
        next_page_token = ""
        try:
            while True:
                data = await self._get_participants_page(meeting_uuid, next_page_token)
                for participant in data.get("participants", []):
                    email = (participant.get("user_email") or "").strip().lower()
                    if email:
                        emails.setdefault(email, None)
                next_page_token = data.get("next_page_token") or ""
                if not next_page_token:
                    break
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning(
                "zoom.attendance_lookup_failed",
                meeting_uuid=meeting_uuid,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return []

        logger.info("zoom.attendance_loaded", meeting_uuid=meeting_uuid, emails=len(emails))
        return list(emails)
