from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import json
import logging
import os
import time
import uuid

from openai import AsyncOpenAI
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from core.config import INTERVIEW_ROLE
from core.logger import log_event
from interviewer.api.ws_voice_components import (
    ConnectionLifecycleManager,
    MessageDispatcher,
    StateEmitter,
)
from interviewer.errors import InvalidTransition, TransportFailure
from interviewer.interview.session import InterviewSession, InterviewSettings
from interviewer.schemas import InboundMessage
from interviewer.services.openai_service import FollowUpGenerator, build_openai_client
from interviewer.services.whisper_service import TranscriptionService
from interviewer.session.registry import session_registry
from interviewer.session_controller import InterviewSessionController
from interviewer.system_metrics import decrement_metric, increment_metric

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("ws_interview")

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))
MAX_ROLE_CHARS = 120

router = APIRouter()
websocket_send_locks: dict[WebSocket, asyncio.Lock] = {}


class WsDependencyProvider:
    def __init__(self):
        self._client: AsyncOpenAI | None = None

    def get_openai_client(self) -> AsyncOpenAI:
        # one handle shared read-only by every session
        if self._client is None:
            self._client = build_openai_client()
        return self._client

    def create_settings(self, role: str | None = None) -> InterviewSettings:
        selected = str(role or "").strip()[:MAX_ROLE_CHARS]
        return InterviewSettings(role=selected or INTERVIEW_ROLE)

    def create_transcriber(self) -> TranscriptionService:
        return TranscriptionService(client=self.get_openai_client())

    def create_generator(self) -> FollowUpGenerator:
        return FollowUpGenerator(client=self.get_openai_client())


dependency_provider = WsDependencyProvider()


async def _register_connection(session_id: str, websocket: WebSocket) -> None:
    websocket_send_locks.setdefault(websocket, asyncio.Lock())
    increment_metric("ws_connections_active", 1)


async def _unregister_connection(session_id: str, websocket: WebSocket) -> None:
    websocket_send_locks.pop(websocket, None)
    session_registry.mark_inactive(session_id)
    decrement_metric("ws_connections_active", 1)


async def _send_text_with_lock(websocket: WebSocket, encoded_payload: str) -> None:
    lock = websocket_send_locks.get(websocket)
    if lock is None:
        await websocket.send_text(encoded_payload)
        return
    async with lock:
        await websocket.send_text(encoded_payload)


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    session_id = str(uuid.uuid4())
    settings = dependency_provider.create_settings(websocket.query_params.get("role"))

    await websocket.accept()

    def _log_event(event: str, **fields):
        log_event("ws_interview", event, session_id, **fields)

    async def _send_payload(payload: dict) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            raise TransportFailure("websocket is not connected")
        encoded = json.dumps(payload)
        await _send_text_with_lock(websocket, encoded)

    async def _safe_send(payload: dict) -> None:
        try:
            await _send_payload(payload)
        except Exception as exc:
            logger.warning("ws send failed | session_id=%s err=%s", session_id, exc)

    session = InterviewSession.from_settings(settings, session_id=session_id)
    controller = InterviewSessionController(
        session=session,
        send_fn=_send_payload,
        transcriber=dependency_provider.create_transcriber(),
        generator=dependency_provider.create_generator(),
        flush_interval_sec=settings.flush_interval_sec,
        enforce_deadline=settings.enforce_deadline,
    )
    lifecycle_manager = ConnectionLifecycleManager(
        register_fn=_register_connection,
        unregister_fn=_unregister_connection,
    )
    state_emitter = StateEmitter(send_fn=_safe_send)

    session_registry.register(session_id, controller, role=settings.role)
    await lifecycle_manager.register(session_id, websocket)
    _log_event("connect", role=settings.role)

    # ================= INBOUND HANDLERS =================
    async def on_start(_payload: dict) -> bool:
        try:
            controller.start()
        except InvalidTransition as exc:
            logger.warning("Start rejected | session_id=%s err=%s", session_id, exc)
            await state_emitter.emit_error(session_id, "invalid_transition", str(exc))
        return True

    async def on_stop(_payload: dict) -> bool:
        controller.stop("stop command")
        return False

    async def on_ping(_payload: dict) -> bool:
        await _safe_send({
            "type": "pong",
            "session_id": session_id,
            "ts": time.time(),
        })
        return True

    async def on_sync_state(_payload: dict) -> bool:
        await state_emitter.emit_state(session.snapshot())
        return True

    async def on_unknown(payload: dict) -> bool:
        _log_event("unknown_message", message_type=str(payload.get("type") or "unknown"))
        return True

    dispatcher = MessageDispatcher(on_unknown_fn=on_unknown)
    dispatcher.on("start_interview", on_start)
    dispatcher.on("stop", on_stop)
    dispatcher.on("ping", on_ping)
    dispatcher.on("sync_state_request", on_sync_state)

    stop_reason = "client_disconnect"
    try:
        while True:
            msg = await websocket.receive()

            if msg["type"] == "websocket.disconnect":
                break

            if msg.get("bytes") is not None:
                session_registry.touch(session_id)
                controller.feed_audio(msg["bytes"])
                continue

            text_payload = str(msg.get("text") or "")
            if not text_payload:
                continue
            if len(text_payload.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                logger.warning("WS message too large | session_id=%s bytes=%s", session_id, len(text_payload.encode("utf-8")))
                stop_reason = "message_too_large"
                break

            try:
                payload = json.loads(text_payload)
            except json.JSONDecodeError:
                await state_emitter.emit_error(session_id, "invalid_json", "message is not valid JSON")
                continue
            try:
                message = InboundMessage.model_validate(payload)
            except ValidationError:
                await state_emitter.emit_error(session_id, "invalid_message", "message must be a JSON object with a string type")
                continue

            session_registry.touch(session_id)
            if not await dispatcher.dispatch(message.model_dump()):
                stop_reason = "stop_command"
                break

    except WebSocketDisconnect:
        stop_reason = "client_disconnect"
    finally:
        await controller.aclose(stop_reason)
        await lifecycle_manager.unregister(session_id, websocket)
        entry = session_registry.get(session_id) or {}
        connected_sec = round(time.time() - float(entry.get("created_at") or time.time()), 3)
        _log_event("disconnect", reason=stop_reason, connected_sec=connected_sec)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                pass
