from __future__ import annotations

import logging
from dataclasses import dataclass

from slotbook.application.ports.notifier import NotifierPort, SendResult


@dataclass(frozen=True)
class SentMessage:
    to: str
    subject: str
    html_body: str
    text_body: str


class MockNotifier(NotifierPort):
    def __init__(self) -> None:
        self.outbox: list[SentMessage] = []
        self._logger = logging.getLogger(__name__)

    def send(self, to: str, subject: str, html_body: str, text_body: str) -> SendResult:
        self.outbox.append(SentMessage(to=to, subject=subject, html_body=html_body, text_body=text_body))
        self._logger.info("Mock email", extra={"to": to, "subject": subject})
        return SendResult(success=True)

    def sent_to(self, to: str) -> list[SentMessage]:
        return [m for m in self.outbox if m.to == to]
