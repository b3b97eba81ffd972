from collections.abc import AsyncGenerator, Generator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from hearth.api.dependencies import (
    get_settings_dependency,
    get_state_store,
    get_stove_client,
    get_thermostat_client,
)
from hearth.api.main import app
from hearth.config import Settings
from hearth.services.state_store import InMemoryStateStore


@pytest.fixture
def overrides(
    settings: Settings, store: InMemoryStateStore, stove: AsyncMock, thermostat: Any
) -> Generator[dict[Any, Any]]:
    app.dependency_overrides[get_settings_dependency] = lambda: settings
    app.dependency_overrides[get_state_store] = lambda: store
    app.dependency_overrides[get_stove_client] = lambda: stove
    app.dependency_overrides[get_thermostat_client] = lambda: thermostat
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def api_client(overrides: dict[Any, Any]) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
