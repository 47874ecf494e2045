from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable


RegisterFn = Callable[[str, object], Awaitable[None]]
UnregisterFn = Callable[[str, object], Awaitable[None]]
SendFn = Callable[[dict], Awaitable[None]]
HandlerFn = Callable[[dict], Awaitable[bool]]


@dataclass
class ConnectionLifecycleManager:
    register_fn: RegisterFn
    unregister_fn: UnregisterFn

    async def register(self, session_id: str, websocket: object) -> None:
        await self.register_fn(session_id, websocket)

    async def unregister(self, session_id: str, websocket: object) -> None:
        await self.unregister_fn(session_id, websocket)


@dataclass
class MessageDispatcher:
    """Routes inbound JSON messages by "type". Handlers return False to end the connection."""

    handlers: dict[str, HandlerFn] = field(default_factory=dict)
    on_unknown_fn: HandlerFn | None = None

    def on(self, message_type: str, handler: HandlerFn) -> None:
        self.handlers[str(message_type).strip().lower()] = handler

    async def dispatch(self, payload: dict) -> bool:
        message_type = str((payload or {}).get("type") or "").strip().lower()
        handler = self.handlers.get(message_type)
        if handler is None:
            if self.on_unknown_fn is None:
                return True
            return await self.on_unknown_fn(payload)
        return await handler(payload)


@dataclass
class StateEmitter:
    send_fn: SendFn

    async def emit_state(self, snapshot: dict) -> None:
        await self.send_fn({
            "type": "session_state",
            **snapshot,
        })

    async def emit_error(self, session_id: str, code: str, detail: str) -> None:
        await self.send_fn({
            "type": "error",
            "session_id": session_id,
            "code": code,
            "detail": detail,
        })
