"""Tests for the registry store and JSON file helpers."""

import pytest

from mcp_config_manager.core import files
from mcp_config_manager.core.backup import BackupManager
from mcp_config_manager.core.exceptions import MalformedConfigError
from mcp_config_manager.core.locks import PathLocks
from mcp_config_manager.core.registry import RegistryStore


@pytest.fixture
def registry(tmp_path, fake_clock):
    return RegistryStore(
        tmp_path / "mcp_server_registry.json", BackupManager(10, clock=fake_clock), PathLocks()
    )


class TestJSONFiles:
    """Test async JSON helpers."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_as_none(self, tmp_path):
        assert await files.read_json(tmp_path / "nope.json") is None

    @pytest.mark.asyncio
    async def test_invalid_json_names_the_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedConfigError) as exc_info:
            await files.read_json(path)
        assert exc_info.value.path == path
        assert "broken.json" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_object_is_malformed(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(MalformedConfigError):
            await files.read_json(path)

    @pytest.mark.asyncio
    async def test_write_uses_two_space_indent(self, tmp_path):
        path = tmp_path / "nested" / "out.json"
        await files.write_json(path, {"mcpServers": {"x": {"command": "node"}}})

        text = path.read_text(encoding="utf-8")
        assert text.startswith('{\n  "mcpServers": {\n    "x"')
        assert list(tmp_path.joinpath("nested").iterdir()) == [path]

    @pytest.mark.asyncio
    async def test_metadata(self, tmp_path):
        path = tmp_path / "m.json"
        assert await files.file_metadata(path) == {"exists": False, "mtime": None}
        assert await files.file_metadata(None) == {"exists": False, "mtime": None}

        path.write_text("{}", encoding="utf-8")
        meta = await files.file_metadata(path)
        assert meta["exists"] is True
        assert meta["mtime"]


class TestRegistryStore:
    """Test RegistryStore."""

    @pytest.mark.asyncio
    async def test_read_creates_missing_file(self, registry, read_json):
        assert await registry.read() == {}
        assert read_json(registry.path) == {"mcpServers": {}}

    @pytest.mark.asyncio
    async def test_malformed_registry_reads_empty(self, registry):
        registry.path.write_text("{oops", encoding="utf-8")
        assert await registry.read() == {}

    def test_annotate_marks_everything_disabled(self):
        source = {"x": {"command": "node"}}
        annotated = RegistryStore.annotate(source)

        assert annotated == {"x": {"command": "node", "enabled": False}}
        assert "enabled" not in source["x"]

    @pytest.mark.asyncio
    async def test_write_backs_up_previous_file(self, registry, read_json):
        await registry.write({"x": {"command": "node"}})
        await registry.write({"y": {"command": "python"}})

        assert read_json(registry.path) == {"mcpServers": {"y": {"command": "python"}}}
        assert len(registry.backups.list_backups(registry.path)) == 1

    @pytest.mark.asyncio
    async def test_merge_upserts_and_strips_transient_keys(self, registry, read_json):
        await registry.write({"x": {"command": "node"}, "keep": {"command": "deno"}})

        merged = await registry.merge({
            "x": {"command": "bun", "enabled": True, "_sources": ["a"]},
            "y": {"command": "python", "enabled": False},
        })

        expected = {
            "x": {"command": "bun"},
            "keep": {"command": "deno"},
            "y": {"command": "python"},
        }
        assert merged == expected
        assert read_json(registry.path)["mcpServers"] == expected

    @pytest.mark.asyncio
    async def test_merge_without_overwrite_only_adds(self, registry):
        await registry.write({"x": {"command": "node"}})

        merged = await registry.merge(
            {"x": {"command": "bun"}, "y": {"command": "python"}}, overwrite=False
        )

        assert merged == {"x": {"command": "node"}, "y": {"command": "python"}}
