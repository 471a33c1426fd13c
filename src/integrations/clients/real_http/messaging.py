"""
Real Messaging HTTP Client.

Sends WhatsApp messages through the Chatrace bot API.
Used when CHATRACE_API_KEY is configured (or INTEGRATIONS_MODE=real).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from src.integrations.contracts.messaging import (
    DeliveryStatus,
    MessageResponse,
    OutboundMessage,
    TemplateMessage,
    validate_outbound_message,
)

logger = logging.getLogger(__name__)


class RealMessagingClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        bot_id: Optional[str] = None,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("CHATRACE_API_URL", "https://api.chatrace.com/v1")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("CHATRACE_API_KEY", "")
        self.bot_id = bot_id if bot_id is not None else os.getenv("CHATRACE_BOT_ID", "")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url:
            raise ValueError("CHATRACE_API_URL is not configured.")

        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json() if response.content else {}

    async def send_message(self, message: OutboundMessage) -> MessageResponse:
        errors = validate_outbound_message(message)
        if errors:
            raise ValueError("; ".join(errors))

        payload: Dict[str, Any] = {
            "to": message.to,
            "botId": self.bot_id,
            "message": message.text,
            "mediaUrl": message.media_url,
        }
        data = await self._post("/messages/send", payload)
        logger.info("WhatsApp message sent to %s", message.to)
        return _to_response(message.to, data)

    async def send_template(self, message: TemplateMessage) -> MessageResponse:
        payload: Dict[str, Any] = {
            "to": message.to,
            "botId": self.bot_id,
            "template": message.template,
            "parameters": message.parameters,
        }
        data = await self._post("/messages/template", payload)
        logger.info("Template message %s sent to %s", message.template, message.to)
        return _to_response(message.to, data)


def _to_response(to: str, data: Dict[str, Any]) -> MessageResponse:
    raw_status = str(data.get("status") or "SENT").upper()
    status = DeliveryStatus.QUEUED if raw_status in {"QUEUED", "PENDING", "ACCEPTED"} else DeliveryStatus.SENT
    if raw_status in {"FAILED", "ERROR"}:
        status = DeliveryStatus.FAILED
    return MessageResponse(
        to=to,
        status=status,
        provider_message_id=str(data.get("id") or data.get("messageId") or ""),
        message=str(data.get("message") or data.get("detail") or ""),
        raw=data,
    )
