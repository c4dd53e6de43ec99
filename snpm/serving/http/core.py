# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Request/response transport: POST /publish.

The caller sends {url, version, checksum} and waits. The whole pipeline runs
before the single response goes back:

  200  empty body               - built and checksum matched
  400  text body                - bad input, bad reference, checksum mismatch
  413  text body                - body larger than max_request_size_bytes
  500  text body                - any other stage failure

Progress is only logged; nothing is streamed.
"""

import json
import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from snpm.logging.logger import get_logger
from snpm.publish.errors import InputValidationError
from snpm.publish.models import PipelineOutcome
from snpm.publish.reporter import CollectingReporter
from snpm.serving.api.schema import validate_publish_payload
from snpm.serving.server.state import RegistryState

logger: logging.Logger = get_logger(__name__)


def outcome_to_response(outcome: PipelineOutcome) -> Response:
    """Map a terminal pipeline outcome onto an HTTP response."""
    if outcome.ok:
        return Response(status_code=200)
    status_code = 400 if outcome.client_error else 500
    return PlainTextResponse(outcome.message, status_code=status_code)


async def publish_endpoint(request: Request) -> Response:
    state: RegistryState = request.app.state.registry
    max_size = state.config.max_request_size_bytes

    body = await request.body()
    if not body:
        return PlainTextResponse("Request body is empty", status_code=400)
    if len(body) > max_size:
        return PlainTextResponse(
            f"Payload too large: {len(body)} bytes exceeds limit of {max_size}",
            status_code=413,
        )

    try:
        payload = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        return PlainTextResponse(f"Invalid JSON: {err}", status_code=400)

    try:
        publish_request = validate_publish_payload(
            payload,
            require_checksum=True,
            github_host=state.config.github_host,
        )
    except InputValidationError as err:
        logger.info("Publish request rejected", extra={"error": err.message})
        return PlainTextResponse(err.message, status_code=400)

    reporter = CollectingReporter()
    pipeline = state.factory.create(publish_request, reporter)
    outcome = await run_in_threadpool(state.run, pipeline)

    return outcome_to_response(outcome)
