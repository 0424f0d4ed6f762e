from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None


class NotifierPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, html_body: str, text_body: str) -> SendResult:
        """Deliver one message. Must not raise for delivery failures."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any connections held by the adapter."""
