from typing import Any, Dict, Optional

import httpx

from intake.core.errors import RejectionFailure, TransportFailure
from intake.observability.logging import log
from intake.settings import settings
from intake.utils.time import iso_from_ms, now_ms


class SinkClient:
    """
    HTTP client for the external record sink.

    `post_record` raises TransportFailure for anything worth retrying
    (timeouts, connection errors, 5xx) and RejectionFailure for everything
    that is not (4xx, other non-2xx, or a 2xx body saying success=false).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        username: Optional[str] = None,
        app_password: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SINK_BASE_URL).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.SINK_TIMEOUT_SEC)
        self.username = username if username is not None else settings.SINK_USERNAME
        self.app_password = app_password if app_password is not None else settings.SINK_APP_PASSWORD
        self.transport = transport

    def _client(self) -> httpx.Client:
        auth = None
        if self.username and self.app_password:
            auth = httpx.BasicAuth(self.username, self.app_password)
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            auth=auth,
            transport=self.transport,
            headers={"User-Agent": "intake-bot/1.0", "Content-Type": "application/json"},
        )

    def post_record(self, payload: Dict[str, Any]) -> Optional[str]:
        """POST one record. Returns the sink-assigned id (may be None)."""
        if not self.base_url:
            raise RejectionFailure("SINK_BASE_URL is not set")

        try:
            with self._client() as client:
                resp = client.post(settings.SINK_RECORD_PATH, json=payload)
        except httpx.TimeoutException as e:
            raise TransportFailure(f"timeout:{type(e).__name__}") from e
        except httpx.TransportError as e:
            raise TransportFailure(f"transport:{type(e).__name__}:{str(e)[:200]}") from e

        code = int(resp.status_code)
        if code >= 500:
            raise TransportFailure(f"server_error:{code}", status_code=code)
        if not 200 <= code < 300:
            raise RejectionFailure(f"rejected:{code}:{(resp.text or '')[:200]}", status_code=code)

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if body.get("success") is False:
            raise RejectionFailure(f"rejected_by_sink:{str(body.get('error') or 'unknown')[:200]}", status_code=code)

        ext_id = body.get("id")
        return str(ext_id) if ext_id is not None else None

    def health_check(self) -> bool:
        if not self.base_url:
            return False
        try:
            with self._client() as client:
                resp = client.get(settings.SINK_HEALTH_PATH)
            if resp.status_code != 200:
                log(event="sink_health_failed", statusCode=int(resp.status_code))
                return False
            try:
                body = resp.json()
            except ValueError:
                body = {}
            return isinstance(body, dict) and body.get("status") == "ok"
        except httpx.HTTPError as e:
            log(event="sink_health_failed", errorType=type(e).__name__, error=str(e)[:200])
            return False

    def notify_activity(self, event_type: str, user_id: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Best-effort activity ping. Never raises."""
        if not self.base_url:
            return False
        body = {
            "type": event_type,
            "user_id": user_id,
            "data": data or {},
            "timestamp": iso_from_ms(now_ms()),
        }
        try:
            with self._client() as client:
                resp = client.post(settings.SINK_ACTIVITY_PATH, json=body)
            return 200 <= resp.status_code < 300
        except httpx.HTTPError as e:
            log(event="activity_notification_failed", userId=user_id, type=event_type, error=str(e)[:200])
            return False
