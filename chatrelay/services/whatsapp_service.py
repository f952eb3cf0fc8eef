from pathlib import Path
from typing import Optional

import httpx

from chatrelay.logging_config import get_logger
from chatrelay.services.result import GATEWAY_ERROR, Result

logger = get_logger("whatsapp_service")


class WhatsAppGateway:
    """Client for the local WhatsApp HTTP gateway (send/message, send/file)."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _post(self, path: str, *, json: Optional[dict] = None, data: Optional[dict] = None, files=None) -> Result[dict]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=json, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp gateway error: {e}", extra={"context": {"url": url}})
            return Result.failure(str(e), GATEWAY_ERROR)

        logger.info(f"Gateway response: status={response.status_code}, path={path}, body={response.text[:200]}")
        if not response.is_success:
            return Result.failure(f"HTTP {response.status_code}: {response.text[:200]}", GATEWAY_ERROR)

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        return Result.success(body if isinstance(body, dict) else {"data": body})

    def send_text(self, phone: str, message: str) -> Result[dict]:
        """Send a plain text message to `phone` (a WhatsApp JID)."""
        if not phone or not message:
            return Result.failure("phone and message are required", GATEWAY_ERROR)
        return self._post(
            "/send/message",
            json={"is_forwarded": False, "message": message, "phone": phone},
        )

    def send_voice_note(self, phone: str, audio_path: Path, mime_type: str = "audio/wav") -> Result[dict]:
        """Upload an audio file as a push-to-talk voice note."""
        path = Path(audio_path)
        try:
            with path.open("rb") as handle:
                return self._post(
                    "/send/file",
                    data={"phone": phone, "type": "ptt"},
                    files={"file": (path.name, handle, mime_type)},
                )
        except OSError as e:
            logger.error(f"Cannot read voice note {path}: {e}")
            return Result.failure(str(e), GATEWAY_ERROR)
