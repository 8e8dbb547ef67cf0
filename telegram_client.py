"""
Minimal Telegram Bot API client over requests.

Covers exactly what the bot needs: polling updates, sending and editing
status messages, and uploading videos/documents.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = (15, 30)  # (connect timeout, read timeout)


class TelegramAPIError(RuntimeError):
    """A Bot API call failed at the transport or API level."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TelegramClient:
    """Bot API client. One instance per bot token."""

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout=REQUEST_TIMEOUT,
        upload_timeout: float = 600.0,
        session: Optional[requests.Session] = None,
    ):
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"{api_base.rstrip('/')}/bot{token}"
        self._timeout = timeout
        self._upload_timeout = upload_timeout
        self._session = session or requests.Session()

    def _call(
        self,
        method: str,
        data: Dict[str, Any],
        files: Optional[Dict[str, Any]] = None,
        timeout=None,
    ) -> Any:
        url = f"{self._base}/{method}"
        try:
            response = self._session.post(
                url, data=data, files=files, timeout=timeout or self._timeout
            )
        except requests.RequestException as e:
            # str(e) can contain the URL, hence the token
            raise TelegramAPIError(
                f"Telegram {method} request failed: {type(e).__name__}"
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TelegramAPIError(
                f"Telegram {method} returned non-JSON (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

        if not payload.get("ok"):
            raise TelegramAPIError(
                f"Telegram {method} error: {payload.get('description', payload)}",
                status_code=payload.get("error_code", response.status_code),
            )
        return payload["result"]

    def get_updates(
        self,
        offset: Optional[int] = None,
        timeout_s: int = 0,
        allowed_updates: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch pending updates with ``update_id >= offset``."""
        data: Dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            data["offset"] = offset
        if allowed_updates is not None:
            data["allowed_updates"] = json.dumps(allowed_updates)
        connect, read = self._timeout
        return self._call("getUpdates", data, timeout=(connect, read + timeout_s))

    def send_message(self, chat_id: Union[int, str], text: str) -> Dict[str, Any]:
        return self._call("sendMessage", {"chat_id": chat_id, "text": text})

    def edit_message_text(
        self, chat_id: Union[int, str], message_id: int, text: str
    ) -> Any:
        return self._call(
            "editMessageText",
            {"chat_id": chat_id, "message_id": message_id, "text": text},
        )

    def _upload(
        self,
        method: str,
        field: str,
        chat_id: Union[int, str],
        path: Path,
        caption: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"chat_id": chat_id, "caption": caption}
        if extra:
            data.update(extra)
        logger.info("Uploading %s via %s", Path(path).name, method)
        with open(path, "rb") as f:
            return self._call(
                method,
                data,
                files={field: (Path(path).name, f)},
                timeout=(self._timeout[0], self._upload_timeout),
            )

    def send_video(
        self, chat_id: Union[int, str], path: Path, caption: str = ""
    ) -> Dict[str, Any]:
        return self._upload(
            "sendVideo",
            "video",
            chat_id,
            path,
            caption,
            extra={"supports_streaming": "true"},
        )

    def send_document(
        self, chat_id: Union[int, str], path: Path, caption: str = ""
    ) -> Dict[str, Any]:
        return self._upload("sendDocument", "document", chat_id, path, caption)
