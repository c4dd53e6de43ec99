# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Fixtures for the registry transports: a FastAPI app wired to fake collaborators."""

from typing import Any, Callable, Optional

import pytest
from fastapi.testclient import TestClient

from snpm.config.schema import RegistryConfig
from snpm.publish.pipeline import PipelineFactory
from snpm.serving.server.core import create_app


@pytest.fixture()
def make_client(make_fetcher, make_build_tool) -> Callable[..., tuple[TestClient, Any, Any]]:  # type: ignore[no-untyped-def]
    """
    Build a TestClient around a fresh app.

    Returns (client, fetcher, build_tool) so tests can assert which stages ran.
    """

    def _make(
        fetcher: Optional[Any] = None,
        build_tool: Optional[Any] = None,
        **config_overrides: Any,
    ) -> tuple[TestClient, Any, Any]:
        config = RegistryConfig(config_version="1.0.0", **config_overrides)
        fetcher = fetcher or make_fetcher()
        build_tool = build_tool or make_build_tool()
        factory = PipelineFactory(config, fetcher=fetcher, build_tool=build_tool)
        return TestClient(create_app(config, factory)), fetcher, build_tool

    return _make
