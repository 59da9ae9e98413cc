"""Async client for the Slack Web API.

Covers the Web API methods the service needs: resolving a user by email,
posting a message (DMs use the user id as channel) and posting an
ephemeral message. Slack answers HTTP 200 with ``{"ok": false}`` on most
failures, so the envelope is checked explicitly.

Calls are not retried: notification failures are logged by callers and
never affect persisted state.
"""

from __future__ import annotations

import httpx
import structlog

logger = structlog.get_logger(__name__)

SLACK_API_BASE_URL = "https://slack.com/api"


class SlackApiError(Exception):
    """Slack returned ``ok: false`` for a Web API call."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Slack API {method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    """Thin Slack Web API wrapper over a shared httpx.AsyncClient.

    Args:
        http_client: Shared httpx.AsyncClient (owned by the application lifespan).
        bot_token: Slack bot token (xoxb-...).
        base_url: API base URL, overridable for tests.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        base_url: str = SLACK_API_BASE_URL,
    ) -> None:
        self._http = http_client
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._bot_token)

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._bot_token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    async def _call(self, method: str, *, json: dict | None = None, params: dict | None = None) -> dict:
        url = f"{self._base_url}/{method}"
        if json is not None:
            response = await self._http.post(url, json=json, headers=self._headers)
        else:
            response = await self._http.get(url, params=params, headers=self._headers)
        response.raise_for_status()
        # Proxies and gateways can answer 200 with an HTML page
        try:
            data = response.json()
        except ValueError as exc:
            raise SlackApiError(method, "invalid_response") from exc
        if not isinstance(data, dict):
            raise SlackApiError(method, "invalid_response")
        if not data.get("ok"):
            raise SlackApiError(method, data.get("error", "unknown_error"))
        return data

    async def lookup_user_id_by_email(self, email: str) -> str | None:
        """Resolve an email to a Slack user id.

        Returns:
            The user id, or None if no Slack user has this email.

        Raises:
            SlackApiError: For Slack errors other than users_not_found.
        """
        try:
            data = await self._call("users.lookupByEmail", params={"email": email})
        except SlackApiError as exc:
            if exc.error == "users_not_found":
                return None
            raise
        return (data.get("user") or {}).get("id")

    async def post_message(self, channel: str, text: str, blocks: list[dict] | None = None) -> dict:
        """POST chat.postMessage. ``text`` is the notification fallback."""
        body: dict = {"channel": channel, "text": text}
        if blocks is not None:
            body["blocks"] = blocks
        data = await self._call("chat.postMessage", json=body)
        logger.info("slack.message_posted", channel=channel, ts=data.get("ts"))
        return data

    async def post_ephemeral(self, channel: str, user: str, text: str) -> dict:
        """POST chat.postEphemeral, visible only to ``user``."""
        data = await self._call(
            "chat.postEphemeral",
            json={"channel": channel, "user": user, "text": text},
        )
        logger.info("slack.ephemeral_posted", channel=channel, user=user)
        return data
