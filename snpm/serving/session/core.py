# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Session transport: a WebSocket at /session that streams publish progress.

Frames in both directions are JSON objects {"event": <name>, "data": <payload>}.

  client → server   publish  {"url": ..., "version": ..., "checksum"?: ...}
  server → client   message  "<progress line>" (one per stage, then "Finished!")
  server → client   error    "<failure message>"

After the final success message or an error the server closes the socket.
Unknown events get an `error` frame and the session stays open. If the
client disconnects mid-run the run's token is cancelled, which kills any
running download or build.

The pipeline runs in a worker thread; its reporter hands progress back to
the event loop through an asyncio.Queue.
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from snpm.logging.logger import get_logger
from snpm.publish.cancellation import CancellationToken
from snpm.publish.errors import InputValidationError, PublishError
from snpm.publish.models import SUCCESS_MESSAGE, PipelineOutcome, Stage
from snpm.publish.pipeline import PublishPipeline
from snpm.serving.api.schema import validate_publish_payload
from snpm.serving.server.state import RegistryState

logger: logging.Logger = get_logger(__name__)

EVENT_PUBLISH = "publish"
EVENT_MESSAGE = "message"
EVENT_ERROR = "error"

# Queue item kinds. `done` is always the last thing the worker enqueues.
_PROGRESS = "progress"
_RESULT = "result"
_DONE = "done"


class QueueReporter:
    """StageReporter that forwards into an asyncio.Queue from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[tuple[str, Any]]") -> None:
        self._loop = loop
        self._queue = queue

    def report_progress(self, stage: Stage, message: str) -> None:
        logger.info(message, extra={"stage": stage.value})
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (_PROGRESS, message))

    def report_result(self, outcome: PipelineOutcome) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (_RESULT, outcome))


async def send_event(websocket: WebSocket, event: str, data: Any) -> bool:
    """Send one frame. Returns False if the client is already gone."""
    if websocket.client_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_text(json.dumps({"event": event, "data": data}))
    except (WebSocketDisconnect, RuntimeError) as err:
        logger.info("Session frame not delivered", extra={"event": event, "error": str(err)})
        return False
    return True


async def _watch_disconnect(websocket: WebSocket, token: CancellationToken) -> None:
    # Only one publish per exchange: anything else the client sends is ignored.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.info("Session client left mid-publish, cancelling")
            token.cancel()
            return


def _run_worker(
    state: RegistryState,
    pipeline: PublishPipeline,
    loop: asyncio.AbstractEventLoop,
    queue: "asyncio.Queue[tuple[str, Any]]",
) -> PipelineOutcome:
    try:
        return state.run(pipeline)
    finally:
        loop.call_soon_threadsafe(queue.put_nowait, (_DONE, None))


async def _collect_worker(worker: "asyncio.Task[PipelineOutcome]") -> bool:
    """Await the worker. Returns True if it crashed instead of reporting."""
    try:
        await worker
    except Exception:
        logger.error("Publish worker crashed", exc_info=True)
        return True
    return False


async def run_publish_exchange(websocket: WebSocket, data: Any, state: RegistryState) -> None:
    """Validate one publish event, run it, and stream its progress back."""
    try:
        publish_request = validate_publish_payload(
            data,
            require_checksum=False,
            github_host=state.config.github_host,
        )
    except InputValidationError as err:
        await send_event(websocket, EVENT_ERROR, err.message)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
    token = CancellationToken(state.config.publish_timeout_seconds)
    pipeline = state.factory.create(publish_request, QueueReporter(loop, queue), token)

    worker = asyncio.create_task(asyncio.to_thread(_run_worker, state, pipeline, loop, queue))
    watcher = asyncio.create_task(_watch_disconnect(websocket, token))

    reported = False
    try:
        while True:
            kind, payload = await queue.get()
            if kind == _PROGRESS:
                if not await send_event(websocket, EVENT_MESSAGE, payload):
                    token.cancel()
                continue
            if kind == _DONE:
                break

            reported = True
            outcome: PipelineOutcome = payload
            if outcome.ok:
                await send_event(websocket, EVENT_MESSAGE, SUCCESS_MESSAGE)
            else:
                await send_event(websocket, EVENT_ERROR, outcome.message)
            break
    finally:
        watcher.cancel()
        crashed = await _collect_worker(worker)

    if crashed and not reported:
        await send_event(websocket, EVENT_ERROR, PublishError.default_message)


async def session_endpoint(websocket: WebSocket) -> None:
    state: RegistryState = websocket.app.state.registry
    await websocket.accept()
    logger.info("Session client connected", extra={"client": str(websocket.client)})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await send_event(websocket, EVENT_ERROR, "Invalid JSON frame")
                continue

            event = frame.get("event") if isinstance(frame, dict) else None
            if event != EVENT_PUBLISH:
                await send_event(websocket, EVENT_ERROR, f"Unknown event: {event}")
                continue

            await run_publish_exchange(websocket, frame.get("data"), state)
            break

    except WebSocketDisconnect:
        logger.info("Session client disconnected", extra={"client": str(websocket.client)})
        return

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
    logger.info("Session closed", extra={"client": str(websocket.client)})
