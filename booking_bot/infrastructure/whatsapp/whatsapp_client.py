from __future__ import annotations

import logging
from typing import Any

import httpx

from booking_bot.application.exceptions import NotificationError


class WhatsAppClient:
    """Thin Graph API client for the WhatsApp Cloud API."""

    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v23.0",
        base_url: str = "https://graph.facebook.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._api_root = f"{base_url.rstrip('/')}/{api_version}"
        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._logger = logging.getLogger(__name__)

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def send_message(self, recipient_id: str, message_type: str, content: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient_id,
            "type": message_type,
            message_type: content,
        }
        url = f"{self._api_root}/{self._phone_number_id}/messages"
        resp = self._request("POST", url, operation=f"send_{message_type}", recipient_id=recipient_id, json=payload)
        return resp.json()

    def upload_media(self, content: bytes, filename: str, mime_type: str) -> str:
        url = f"{self._api_root}/{self._phone_number_id}/media"
        resp = self._request(
            "POST",
            url,
            operation="upload_media",
            data={"messaging_product": "whatsapp", "type": mime_type},
            files={"file": (filename, content, mime_type)},
        )
        media_id = resp.json().get("id")
        if not media_id:
            raise NotificationError("Media upload returned no id")
        return str(media_id)

    def download_media(self, media_id: str) -> tuple[bytes, str]:
        meta = self._request("GET", f"{self._api_root}/{media_id}", operation="media_lookup").json()
        media_url = meta.get("url")
        if not media_url:
            raise NotificationError(f"No download url for media {media_id}")
        resp = self._request("GET", media_url, operation="media_download")
        return resp.content, meta.get("mime_type") or resp.headers.get("content-type", "application/octet-stream")

    def _request(self, method: str, url: str, operation: str, recipient_id: str | None = None, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(method, url, headers=self._auth_headers, **kwargs)
        except httpx.HTTPError as e:
            self._logger.error(
                "WhatsApp request failed",
                extra={"reason": operation, "recipient_id": recipient_id, "error": str(e)},
            )
            raise NotificationError(f"WhatsApp {operation} failed: {e}") from e

        if resp.status_code >= 400:
            error_code = None
            error_message = resp.text
            try:
                error = resp.json().get("error", {})
                error_code = error.get("code")
                error_message = error.get("message") or error_message
            except ValueError:
                pass
            self._logger.error(
                "WhatsApp API error",
                extra={
                    "reason": operation,
                    "status": resp.status_code,
                    "error_code": error_code,
                    "error": error_message,
                    "recipient_id": recipient_id,
                },
            )
            raise NotificationError(f"WhatsApp {operation} returned {resp.status_code}: {error_message}")
        return resp
