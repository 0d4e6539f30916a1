from __future__ import annotations

import logging

import httpx

from ..config import Settings, normalize_phone
from .base import Messenger, SendResult

log = logging.getLogger(__name__)


class UltraMsgMessenger(Messenger):
    """
    WhatsApp text messages through the UltraMsg gateway:
      POST {base}/{instance}/messages/chat  (form: token, to, body)
    """

    def __init__(
        self,
        instance_id: str,
        token: str,
        base_url: str = "https://api.ultramsg.com",
        timeout_s: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.instance_id = instance_id
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client

    @classmethod
    def from_settings(cls, s: Settings) -> "UltraMsgMessenger | None":
        if not (s.ULTRAMSG_INSTANCE_ID and s.ULTRAMSG_TOKEN):
            return None
        return cls(s.ULTRAMSG_INSTANCE_ID, s.ULTRAMSG_TOKEN, s.ULTRAMSG_BASE_URL, s.ULTRAMSG_TIMEOUT_S)

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.instance_id}/messages/chat"

    async def _post(self, data: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.url, data=data, timeout=self.timeout_s)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.post(self.url, data=data)

    async def send(self, phone: str, text: str) -> SendResult:
        to = normalize_phone(phone)
        if not to:
            return SendResult(success=False, error="empty phone number")

        try:
            r = await self._post({"token": self.token, "to": to, "body": text})
        except Exception as e:
            log.warning("ultramsg send failed to=%s: %s", to, e)
            return SendResult(success=False, error=str(e))

        if not (200 <= r.status_code < 300):
            return SendResult(success=False, error=f"HTTP {r.status_code}: {r.text[:500]}")

        try:
            body = r.json()
        except ValueError:
            return SendResult(success=False, error=f"non-JSON response: {r.text[:200]}")

        # {"sent": "true", "message": "ok", "id": 123} or {"error": "..."}
        if isinstance(body, dict) and str(body.get("sent")).lower() == "true":
            ext = body.get("id")
            return SendResult(success=True, external_id=str(ext) if ext is not None else None)

        err = body.get("error") if isinstance(body, dict) else None
        return SendResult(success=False, error=str(err or body)[:500])
