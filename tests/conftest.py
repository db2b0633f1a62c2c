"""
Pytest configuration and fixtures for MCP Config Manager testing.

Every test gets its own HOME and data directory under ``tmp_path`` so the
real ``~/.config`` and client config files are never touched.
"""

import itertools
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest
import pytest_asyncio

from mcp_config_manager.core.models import ClientUpdate, SettingsUpdate
from mcp_config_manager.core.reconciler import ReconciliationEngine
from mcp_config_manager.utils.config import Config


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated home directory for default client paths."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("USERPROFILE", str(home_dir))
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    return home_dir


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def config(home: Path, data_dir: Path) -> Config:
    return Config(storage={"data_dir": str(data_dir)})


@pytest.fixture
def fake_clock() -> Callable[[], datetime]:
    """Clock that advances one second per call."""
    start = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write ``{"mcpServers": servers}`` (plus extra top-level keys) to a file."""

    def _write(path: Path, servers: Optional[Dict[str, Any]] = None, **extra: Any) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = dict(extra)
        if servers is not None:
            data["mcpServers"] = servers
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_json() -> Callable[[Path], Any]:
    def _read(path: Path) -> Any:
        return json.loads(Path(path).read_text(encoding="utf-8"))

    return _read


@pytest_asyncio.fixture
async def engine(config: Config, fake_clock) -> ReconciliationEngine:
    """Started engine with the built-in clients disabled."""
    engine = ReconciliationEngine.from_config(config)
    engine.client_store.backups.clock = fake_clock
    await engine.start()
    await engine.update_settings(SettingsUpdate(clients={
        "claude": ClientUpdate(enabled=False),
        "cursor": ClientUpdate(enabled=False),
    }))
    return engine


@pytest.fixture
def originals_dir(tmp_path: Path) -> Path:
    return tmp_path / "originals"


@pytest.fixture
def add_client(originals_dir: Path, write_config):
    """Register a client whose original file holds ``servers`` (None: no file)."""

    async def _add(
        engine: ReconciliationEngine,
        client_id: str,
        servers: Optional[Dict[str, Any]] = None,
        enabled: bool = True,
    ) -> Path:
        original = originals_dir / f"{client_id}.json"
        if servers is not None:
            write_config(original, servers)
        await engine.upsert_client(
            client_id, name=client_id.upper(), config_path=str(original), enabled=enabled
        )
        return original

    return _add
