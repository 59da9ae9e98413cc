"""Retrying transcript downloader.

Zoom transcript download URLs require the per-delivery ``download_token``
as an ``access_token`` query parameter. When the token is stale or rejected
Zoom often answers 200 with an HTML sign-in page instead of an error status,
so HTML responses are treated as failed attempts rather than content.
"""

from __future__ import annotations

import httpx
import structlog
from tenacity.wait import wait_base

from src.clarity.core.retry import backoff_wait, bounded_retry

logger = structlog.get_logger(__name__)

HTML_DOCTYPE_MARKER = "<!doctype html>"


class TranscriptDownloadError(Exception):
    """Base error for transcript download failures."""


class MissingDownloadTokenError(TranscriptDownloadError):
    """The webhook carried no download token; retrying cannot help."""


class InvalidTranscriptResponseError(TranscriptDownloadError):
    """The server answered with an HTML page instead of transcript text."""


def _looks_like_html(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").lower()
    if "text/html" in content_type:
        return True
    return HTML_DOCTYPE_MARKER in response.text.lower()


class TranscriptDownloader:
    """Fetches transcript files with bounded exponential backoff.

    Args:
        http_client: Shared httpx.AsyncClient (owned by the application lifespan).
        max_attempts: Total fetch attempts before the last error is raised.
        backoff_base_seconds: First retry delay; doubles on each attempt.
        wait: Optional tenacity wait override (tests pass ``wait_none()``).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        wait: wait_base | None = None,
    ) -> None:
        self._http = http_client
        self._max_attempts = max_attempts
        self._wait = wait if wait is not None else backoff_wait(backoff_base_seconds)

    async def download(self, url: str, access_token: str | None) -> str:
        """Download the transcript text at ``url``.

        Raises:
            MissingDownloadTokenError: No token supplied (not retried).
            InvalidTranscriptResponseError: Every attempt returned HTML.
            httpx.HTTPError: Transport or status failure on the last attempt.
        """
        if not access_token:
            raise MissingDownloadTokenError("No download token provided in webhook")

        authorized_url = httpx.URL(url).copy_merge_params({"access_token": access_token})

        async for attempt in bounded_retry(
            self._max_attempts, self._wait, event="download.retrying"
        ):
            with attempt:
                return await self._fetch_once(authorized_url, attempt.retry_state.attempt_number)

        raise TranscriptDownloadError("Download retry loop exited without a result")

    async def _fetch_once(self, url: httpx.URL, attempt_number: int) -> str:
        logger.info("download.attempt", attempt=attempt_number, host=url.host)
        response = await self._http.get(url, follow_redirects=True)
        response.raise_for_status()

        if _looks_like_html(response):
            raise InvalidTranscriptResponseError(
                "Received HTML instead of transcript text; the download token may be expired"
            )

        logger.info("download.succeeded", attempt=attempt_number, size=len(response.content))
        return response.text
