"""HTTP client for the same-origin chat API consumed by the widget."""

import logging
from datetime import datetime
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from traffic_chat.widget.models import Conversation, Message

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ChatAPIError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ChatAPIError):
    pass


class ChatAPIClient:
    """Chat API client.

    Transport failures surface as ``httpx.HTTPError``; error statuses and
    responses that do not have the expected shape raise ``ChatAPIError``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        async with httpx.AsyncClient(
            base_url=self._base_url, transport=self._transport, timeout=self._timeout
        ) as client:
            resp = await client.request(method, path, **kwargs)

        if resp.status_code >= 400:
            try:
                payload = resp.json()
            except ValueError:
                payload = None
            if not isinstance(payload, dict):
                payload = {}
            detail = payload.get("detail") or payload.get("error")
            message = str(detail or f"HTTP error! status: {resp.status_code}")
            logger.debug(f"Chat API {method} {path} failed: {resp.status_code} {message}")
            if resp.status_code == 404:
                raise NotFoundError(message, resp.status_code)
            raise ChatAPIError(message, resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise ChatAPIError(f"Invalid JSON from {path}: {e}", resp.status_code) from e

    @staticmethod
    def _field(data: Any, key: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            raise ChatAPIError(f"Malformed response: missing {key!r}")
        return data[key]

    def _parse(self, model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(self._field(data, "data"))
        except ValidationError as e:
            raise ChatAPIError(f"Malformed {model.__name__} in response: {e}") from e

    def _count(self, data: Any) -> int:
        try:
            return int(self._field(data, "count"))
        except (TypeError, ValueError) as e:
            raise ChatAPIError(f"Malformed count in response: {e}") from e

    # --- Conversations ---

    async def get_conversation(self, conversation_id: str) -> Conversation:
        data = await self._request("GET", f"/api/chat/conversations/{conversation_id}")
        return self._parse(Conversation, data)

    async def find_open_conversation(self, email: str) -> Conversation | None:
        try:
            data = await self._request(
                "GET", "/api/chat/conversations/lookup", params={"email": email}
            )
        except NotFoundError:
            return None
        return self._parse(Conversation, data)

    async def create_conversation(
        self,
        customer_email: str,
        customer_name: str | None = None,
        customer_metadata: dict[str, Any] | None = None,
        page_url: str | None = None,
    ) -> Conversation:
        data = await self._request(
            "POST",
            "/api/chat/conversations/",
            json={
                "customer_email": customer_email,
                "customer_name": customer_name,
                "customer_metadata": customer_metadata or {},
                "source": "widget",
                "page_url": page_url,
            },
        )
        return self._parse(Conversation, data)

    async def unread_conversation_count(self) -> int:
        data = await self._request("GET", "/api/chat/conversations/unread")
        return self._count(data)

    # --- Messages ---

    async def list_messages(self, conversation_id: str) -> list[Message]:
        data = await self._request(
            "GET", "/api/chat/messages/", params={"conversation_id": conversation_id}
        )
        rows = self._field(data, "data")
        if not isinstance(rows, list):
            raise ChatAPIError("Malformed response: expected a message list")
        try:
            return [Message.model_validate(m) for m in rows]
        except ValidationError as e:
            raise ChatAPIError(f"Malformed Message in response: {e}") from e

    async def send_message(
        self,
        conversation_id: str,
        body: str,
        sender_type: str = "customer",
        sender_name: str | None = None,
    ) -> Message:
        data = await self._request(
            "POST",
            "/api/chat/messages/",
            json={
                "conversation_id": conversation_id,
                "body": body,
                "sender_type": sender_type,
                "sender_name": sender_name,
            },
        )
        return self._parse(Message, data)

    async def count_unread_messages(
        self, conversation_id: str, after: datetime | None = None
    ) -> int:
        params: dict[str, str] = {"conversation_id": conversation_id}
        if after is not None:
            params["after"] = after.isoformat()
        data = await self._request("GET", "/api/chat/messages/unread-count", params=params)
        return self._count(data)

    # --- Admin notifications ---

    async def list_notifications(self, unread_only: bool = False, limit: int = 20) -> dict[str, Any]:
        return await self._request(
            "GET",
            "/api/admin/notifications/",
            params={"unread_only": str(unread_only).lower(), "limit": limit},
        )

    async def mark_notification_read(self, notification_id: str, is_read: bool = True) -> dict[str, Any]:
        data = await self._request(
            "PUT", f"/api/admin/notifications/{notification_id}", json={"is_read": is_read}
        )
        return self._field(data, "notification")

    async def mark_all_notifications_read(self) -> None:
        await self._request("POST", "/api/admin/notifications/mark-all-read")
