# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publishing client.

Reads a local project's package.json, takes its repository URL and version,
and asks the registry to publish it over the /session WebSocket. Each
progress line the registry streams back is handed to `on_message` as it
arrives.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

from snpm.logging.logger import get_logger
from snpm.publish.errors import ManifestError
from snpm.publish.manifest import DEFAULT_MANIFEST_FILE, load_manifest_data, repository_url_from
from snpm.publish.models import SUCCESS_MESSAGE

logger: logging.Logger = get_logger(__name__)

DEFAULT_OPEN_TIMEOUT_SECONDS = 10.0


class RegistryConnectionError(Exception):
    """The registry could not be reached or dropped the session."""


@dataclass(frozen=True)
class ProjectInfo:
    """What the client sends about a local project."""

    url: str
    version: str


@dataclass
class PublishResult:
    """Everything the registry said during one publish."""

    messages: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.messages) and self.messages[-1] == SUCCESS_MESSAGE


def read_project(project_dir: Path, manifest_file: str = DEFAULT_MANIFEST_FILE) -> ProjectInfo:
    """
    Pull repository URL and version out of a local manifest.

    Raises:
        ManifestError: Manifest missing, malformed, or lacking url/version.
    """
    data = load_manifest_data(project_dir / manifest_file)
    url = repository_url_from(data)

    version = data.get("version")
    if not isinstance(version, str) or not version:
        raise ManifestError("Manifest has no version")

    return ProjectInfo(url=url, version=version)


def session_uri(host: str, port: int) -> str:
    """
    WebSocket URI of the registry's session endpoint.

    `host` may carry an http(s) scheme, as REGISTRY_URL traditionally does.
    """
    scheme = "ws"
    if host.startswith("https://"):
        scheme, host = "wss", host[len("https://"):]
    elif host.startswith("http://"):
        host = host[len("http://"):]
    elif "://" in host:
        scheme, host = host.split("://", 1)
    return f"{scheme}://{host.rstrip('/')}:{port}/session"


def publish_project(
    project: ProjectInfo,
    host: str,
    port: int,
    checksum: Optional[str] = None,
    on_message: Optional[Callable[[str], None]] = None,
    open_timeout: float = DEFAULT_OPEN_TIMEOUT_SECONDS,
) -> PublishResult:
    """
    Emit a publish event and collect the registry's replies until it hangs up.

    Raises:
        RegistryConnectionError: Connection refused, handshake failure, or
            the connection dropped without a clean close.
    """
    uri = session_uri(host, port)
    payload: dict[str, str] = {"url": project.url, "version": project.version}
    if checksum:
        payload["checksum"] = checksum

    result = PublishResult()
    logger.debug("Connecting to registry", extra={"uri": uri})

    try:
        with connect(uri, open_timeout=open_timeout) as websocket:
            websocket.send(json.dumps({"event": "publish", "data": payload}))
            for raw in websocket:
                frame = json.loads(raw)
                if not isinstance(frame, dict):
                    continue
                event, data = frame.get("event"), frame.get("data")
                if event == "message":
                    result.messages.append(str(data))
                    if on_message is not None:
                        on_message(str(data))
                elif event == "error":
                    result.error = str(data)
    except (OSError, WebSocketException, json.JSONDecodeError) as err:
        raise RegistryConnectionError(f"Cannot talk to registry at {uri}: {err}") from err

    return result
