"""Tests for the settings store."""

import asyncio
import json

import pytest

from mcp_config_manager.core import files
from mcp_config_manager.core.exceptions import (
    ConfigManagerError, MalformedConfigError, ValidationError, WriteError
)
from mcp_config_manager.core.settings_store import SettingsStore


@pytest.fixture
def store(home, tmp_path):
    return SettingsStore(tmp_path / "data" / "settings.json")


class TestSettingsStore:
    """Test SettingsStore."""

    @pytest.mark.asyncio
    async def test_load_creates_defaults_with_built_ins(self, store, home, read_json):
        settings = await store.load()

        assert set(settings.clients) == {"claude", "cursor"}
        assert all(client.built_in for client in settings.clients.values())
        assert settings.clients["cursor"].config_path == str(home / ".cursor" / "mcp.json")
        assert settings.sync_clients is False
        assert settings.max_backups == 10
        assert read_json(store.path)["clients"]["claude"]["builtIn"] is True

    @pytest.mark.asyncio
    async def test_load_fills_missing_built_in_paths(self, store, home, read_json):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({
            "syncClients": True,
            "clients": {"claude": {"name": "Claude", "configPath": None}},
        }), encoding="utf-8")

        settings = await store.load()

        assert settings.sync_clients is True
        assert settings.clients["claude"].config_path.startswith(str(home))
        assert "cursor" in read_json(store.path)["clients"]

    @pytest.mark.asyncio
    async def test_malformed_settings_refuse_to_load(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"clients": {"mine": ', encoding="utf-8")

        with pytest.raises(MalformedConfigError) as excinfo:
            await store.load()

        assert excinfo.value.path == store.path
        with pytest.raises(ConfigManagerError):
            async with store.transaction() as draft:
                draft.max_backups = 5
        assert store.path.read_text(encoding="utf-8") == '{"clients": {"mine": '

    @pytest.mark.asyncio
    async def test_invalid_settings_refuse_to_load(self, store):
        store.path.parent.mkdir(parents=True)
        original = json.dumps({"maxBackups": -3, "clients": {"mine": {"name": "Mine"}}})
        store.path.write_text(original, encoding="utf-8")

        with pytest.raises(MalformedConfigError):
            await store.load()

        assert store.path.read_text(encoding="utf-8") == original

    @pytest.mark.asyncio
    async def test_locked_snapshot_blocks_transactions(self, store):
        await store.load()
        order = []

        async def mutate():
            async with store.transaction() as draft:
                draft.sync_clients = True
            order.append("committed")

        async with store.locked() as snapshot:
            task = asyncio.ensure_future(mutate())
            await asyncio.sleep(0.01)
            order.append("released")
            assert snapshot.sync_clients is False
        await task

        assert order == ["released", "committed"]
        assert store.current().sync_clients is True

    @pytest.mark.asyncio
    async def test_dangling_group_reference_is_cleared(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({
            "clients": {"a": {"name": "A", "syncGroup": "sg-gone"}},
        }), encoding="utf-8")

        settings = await store.load()

        assert settings.clients["a"].sync_group is None

    @pytest.mark.asyncio
    async def test_current_returns_a_copy(self, store):
        await store.load()
        snapshot = store.current()
        snapshot.clients["claude"].name = "changed"

        assert store.current().clients["claude"].name == "Claude"

    @pytest.mark.asyncio
    async def test_transaction_commits(self, store, read_json):
        await store.load()

        async with store.transaction() as draft:
            draft.max_backups = 3

        assert store.current().max_backups == 3
        assert read_json(store.path)["maxBackups"] == 3

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, store, read_json):
        await store.load()

        with pytest.raises(RuntimeError):
            async with store.transaction() as draft:
                draft.max_backups = 3
                raise RuntimeError("boom")

        assert store.current().max_backups == 10
        assert read_json(store.path)["maxBackups"] == 10

    @pytest.mark.asyncio
    async def test_failed_write_leaves_memory_unchanged(self, store, monkeypatch):
        await store.load()

        async def failing_write(path, data):
            raise WriteError(path, "disk full")

        monkeypatch.setattr(files, "write_json", failing_write)

        with pytest.raises(WriteError):
            async with store.transaction() as draft:
                draft.sync_clients = True

        assert store.current().sync_clients is False

    @pytest.mark.asyncio
    async def test_invalid_draft_is_rejected(self, store):
        await store.load()

        with pytest.raises(ValidationError):
            async with store.transaction() as draft:
                draft.max_backups = -1

        assert store.current().max_backups == 10

    @pytest.mark.asyncio
    async def test_save_replaces_settings(self, store):
        settings = await store.load()
        settings.sync_clients = True

        saved = await store.save(settings)

        assert saved.sync_clients is True
        assert store.current().sync_clients is True
