from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from formbody import logging as formbody_logging
from formbody.types import ASGIApp


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_logger():
    formbody_logging.logger.bind_logger(None)
    yield
    formbody_logging.logger.bind_logger(None)


@pytest.fixture
def client_factory() -> Callable[..., httpx.AsyncClient]:
    def factory(app: ASGIApp, **kwargs: Any) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app, **kwargs)
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return factory
