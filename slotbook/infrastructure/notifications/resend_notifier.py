from __future__ import annotations

import logging

import httpx

from slotbook.application.ports.notifier import NotifierPort, SendResult
from slotbook.core.config import settings


class ResendNotifier(NotifierPort):
    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        base_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key or settings.RESEND_API_KEY
        self._sender = sender or settings.EMAIL_FROM
        self._base_url = (base_url or settings.RESEND_BASE_URL).rstrip("/")
        if not self._api_key:
            raise ValueError("RESEND_API_KEY is required to send email")

        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def send(self, to: str, subject: str, html_body: str, text_body: str) -> SendResult:
        payload = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            resp = self._client.post(f"{self._base_url}/emails", json=payload, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("Email send failed", extra={"to": to, "error": str(e)})
            return SendResult(success=False, error=str(e))

        if resp.status_code >= 400:
            try:
                error_message = resp.json().get("message") or resp.text
            except Exception:
                error_message = resp.text
            self._logger.error(
                "Email send rejected",
                extra={"status": resp.status_code, "to": to, "error": error_message},
            )
            return SendResult(success=False, error=error_message)

        self._logger.info("Email sent", extra={"to": to, "subject": subject})
        return SendResult(success=True)
