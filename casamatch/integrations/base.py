from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SendResult:
    success: bool
    external_id: str | None = None
    error: str | None = None


class Messenger(Protocol):
    """Outbound chat channel. Transport problems come back as SendResult(success=False), never raised."""

    async def send(self, phone: str, text: str) -> SendResult:
        ...
