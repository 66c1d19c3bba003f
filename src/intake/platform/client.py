"""
Async HTTP client for the platform (the remote system that owns event requests).

The platform is hosted on an instance that sleeps when idle, so every call
goes through PlatformClient.request():

  1. Best-effort GET of the platform root to trigger a cold boot. The
     outcome is ignored; we just wait a short warm-up delay afterwards.
  2. The real call with a bounded timeout.
  3. On a network error, timeout or gateway status (502/503/504), wait
     attempt × base delay (3s, 6s, 9s by default) and try again, up to
     max_attempts in total.
  4. Give up with RemoteUnavailable carrying the last error.

Any other non-2xx status raises RemoteRejected straight away; retrying a
400 or 401 won't change the answer.

This module knows nothing about intake records. Field mapping lives in
normalizer.py and reconciliation in sync_service.py.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx

from intake.platform.errors import ConfigurationError, RemoteRejected, RemoteUnavailable

logger = logging.getLogger(__name__)

# Statuses a sleeping or restarting host answers with while it boots
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})

EVENT_REQUESTS_PATH = "/api/event-requests"
USER_LOOKUP_PATH = "/api/users/lookup"


class PlatformClient:
    """
    Thin async wrapper over httpx.AsyncClient for platform endpoints.

    Usage:
        async with PlatformClient.from_settings(get_settings()) as client:
            items = await client.list_event_requests("user_123", ["new"])
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        wake_timeout: float = 10.0,
        wake_delay: float = 2.0,
        request_timeout: float = 15.0,
        retry_base_delay: float = 3.0,
        max_attempts: int = 4,
        sleep=asyncio.sleep,
    ):
        """
        Args:
            base_url: Platform base URL, e.g. "https://platform.example.org".
            api_key: Credential sent as a bearer token.
            http: Shared AsyncClient (tests pass one built on httpx.MockTransport).
                  If omitted the client creates and owns one.
            sleep: Awaitable used for warm-up and backoff delays.
        """
        if not base_url or not api_key:
            raise ConfigurationError("Platform API URL and API key must both be set")
        self.base_url = base_url.rstrip("/")
        self.wake_timeout = wake_timeout
        self.wake_delay = wake_delay
        self.request_timeout = request_timeout
        self.retry_base_delay = retry_base_delay
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient()
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "PlatformClient":
        """Build a client from Settings. Raises ConfigurationError if unconfigured."""
        return cls(
            settings.platform_api_url,
            settings.platform_api_key,
            wake_timeout=settings.platform_wake_timeout_seconds,
            wake_delay=settings.platform_wake_delay_seconds,
            request_timeout=settings.platform_request_timeout_seconds,
            retry_base_delay=settings.platform_retry_base_delay_seconds,
            max_attempts=settings.platform_max_attempts,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ─── Remote call wrapper ──────────────────────────────────────────────────

    @property
    def root_url(self) -> str:
        return str(httpx.URL(self.base_url).join("/"))

    async def _wake(self) -> None:
        """Ping the platform root so a dormant instance starts booting."""
        try:
            response = await self._http.get(self.root_url, timeout=self.wake_timeout)
            logger.debug("Wake ping answered %s", response.status_code)
        except httpx.HTTPError as exc:
            logger.info("Wake ping failed (ignored): %s", exc)
        await self._sleep(self.wake_delay)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Issue one platform call with wake-up and retry.

        Returns:
            The 2xx httpx.Response.

        Raises:
            RemoteRejected: non-retryable non-2xx status.
            RemoteUnavailable: all attempts failed.
        """
        url = self.base_url + path
        merged_headers = {**self._headers, **(headers or {})}
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt == 1:
                await self._wake()

            try:
                response = await self._http.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=merged_headers,
                    timeout=self.request_timeout,
                )
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning(
                    "Platform %s %s failed (attempt %d/%d): %s",
                    method, path, attempt, self.max_attempts, exc,
                )
            else:
                if response.is_success:
                    return response
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise RemoteRejected(response.status_code, response.text)
                last_error = RemoteRejected(response.status_code, response.text)
                logger.warning(
                    "Platform %s %s answered %d (attempt %d/%d)",
                    method, path, response.status_code, attempt, self.max_attempts,
                )

            if attempt < self.max_attempts:
                await self._sleep(attempt * self.retry_base_delay)

        raise RemoteUnavailable(
            f"Platform unreachable after {self.max_attempts} attempts: {last_error}",
            last_error=last_error,
        ) from last_error

    # ─── Endpoints ────────────────────────────────────────────────────────────

    async def list_event_requests(
        self,
        assignee_id: str,
        statuses: Iterable[str],
    ) -> List[Dict[str, Any]]:
        """Fetch event requests assigned to a platform user, filtered by status.

        The platform returns either a bare list or a {"data": [...]} envelope.
        """
        response = await self.request(
            "GET",
            EVENT_REQUESTS_PATH,
            params={"assignedTo": assignee_id, "status": ",".join(statuses)},
        )
        payload = response.json()
        if isinstance(payload, dict):
            if "data" not in payload:
                raise ValueError(
                    f"Event request listing has no data field: {sorted(payload)}"
                )
            payload = payload["data"]
        if not isinstance(payload, list):
            raise ValueError(
                f"Unexpected event request listing shape: {type(payload).__name__}"
            )
        return payload

    async def lookup_user_id(self, email: str) -> Optional[str]:
        """Find a platform user id by email. Returns None if there's no match."""
        try:
            response = await self.request("GET", USER_LOOKUP_PATH, params={"email": email})
        except RemoteRejected as exc:
            if exc.status_code == 404:
                return None
            raise
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected user lookup shape: {type(payload).__name__}")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        user_id = data.get("userId")
        return str(user_id) if user_id else None

    async def update_event_request(
        self,
        event_id: str,
        fields: Dict[str, Any],
    ) -> Dict[str, Any]:
        """PATCH an event request. `fields` is a flat dict of values to overwrite."""
        response = await self.request(
            "PATCH",
            f"{EVENT_REQUESTS_PATH}/{quote(str(event_id), safe='')}",
            json=fields,
        )
        if not response.content:
            return {}
        return response.json()
