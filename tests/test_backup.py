"""Tests for the backup manager."""

from datetime import datetime, timezone

import pytest

from mcp_config_manager.core.backup import BACKUP_DIR_NAME, BackupManager, format_timestamp


def test_format_timestamp_replaces_illegal_characters():
    moment = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    assert format_timestamp(moment) == "2024-05-01T12-30-45-123456Z"


class TestBackupManager:
    """Test BackupManager."""

    @pytest.mark.asyncio
    async def test_missing_file_is_noop(self, tmp_path):
        manager = BackupManager(5)
        assert await manager.backup(tmp_path / "absent.json") is None
        assert not (tmp_path / BACKUP_DIR_NAME).exists()

    @pytest.mark.asyncio
    async def test_backup_copies_file_beside_original(self, tmp_path, fake_clock):
        target = tmp_path / "claude.json"
        target.write_text('{"mcpServers": {}}', encoding="utf-8")

        created = await BackupManager(5, clock=fake_clock).backup(target)

        assert created.parent == tmp_path / BACKUP_DIR_NAME
        assert created.name == "backup-claude.json-2024-05-01T12-00-00-000000Z.json"
        assert created.read_text(encoding="utf-8") == '{"mcpServers": {}}'

    @pytest.mark.asyncio
    async def test_retention_keeps_newest(self, tmp_path, fake_clock):
        target = tmp_path / "config.json"
        manager = BackupManager(2, clock=fake_clock)

        created = []
        for i in range(4):
            target.write_text(f'{{"n": {i}}}', encoding="utf-8")
            created.append(await manager.backup(target))

        remaining = manager.list_backups(target)
        assert remaining == [created[3], created[2]]
        assert remaining[0].read_text(encoding="utf-8") == '{"n": 3}'

    @pytest.mark.asyncio
    async def test_retention_provider_is_read_each_time(self, tmp_path, fake_clock):
        target = tmp_path / "config.json"
        target.write_text("{}", encoding="utf-8")
        limit = {"value": 3}
        manager = BackupManager(lambda: limit["value"], clock=fake_clock)

        for _ in range(3):
            await manager.backup(target)
        limit["value"] = 1
        await manager.backup(target)

        assert len(manager.list_backups(target)) == 1

    @pytest.mark.asyncio
    async def test_other_files_backups_are_not_pruned(self, tmp_path, fake_clock):
        first = tmp_path / "a.json"
        second = tmp_path / "b.json"
        first.write_text("{}", encoding="utf-8")
        second.write_text("{}", encoding="utf-8")
        manager = BackupManager(1, clock=fake_clock)

        await manager.backup(first)
        await manager.backup(second)
        await manager.backup(first)

        assert len(manager.list_backups(first)) == 1
        assert len(manager.list_backups(second)) == 1

    @pytest.mark.asyncio
    async def test_sibling_with_longer_name_is_not_pruned(self, tmp_path, fake_clock):
        first = tmp_path / "a.json"
        sibling = tmp_path / "a.json-x.json"
        first.write_text("{}", encoding="utf-8")
        sibling.write_text("{}", encoding="utf-8")
        manager = BackupManager(1, clock=fake_clock)

        await manager.backup(sibling)
        await manager.backup(sibling)
        await manager.backup(first)
        await manager.backup(first)

        assert len(manager.list_backups(first)) == 1
        assert manager.list_backups(sibling)[0].name.startswith("backup-a.json-x.json-")
        assert len(list((tmp_path / BACKUP_DIR_NAME).iterdir())) == 2

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, tmp_path, caplog):
        target = tmp_path / "config.json"
        target.write_text("{}", encoding="utf-8")
        # A plain file where the backup directory should go.
        (tmp_path / BACKUP_DIR_NAME).write_text("", encoding="utf-8")

        assert await BackupManager(5).backup(target) is None
        assert "Failed to create or clean up backups" in caplog.text
