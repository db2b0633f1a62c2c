"""
Sync group manager.

A sync group is a set of two or more clients sharing one active-set file.
Membership changes apply the dissolution rule: a group left with one member
or fewer is dissolved, its remaining member is released and its shared
file is deleted. Every released client gets the group's active set copied
into its managed file so its effective configuration stays the same.
"""

import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from mcp_config_manager.core.client_config import ClientConfigStore
from mcp_config_manager.core.exceptions import NotFoundError, ValidationError
from mcp_config_manager.core.models import ActiveSet, Settings, SyncGroup
from mcp_config_manager.core.settings_store import SettingsStore
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MembershipChange:
    """Bookkeeping for one membership update, applied after settings commit."""

    released: Dict[str, str] = field(default_factory=dict)  # client id -> old group id
    dissolved: Dict[str, Path] = field(default_factory=dict)  # group id -> shared file

    def to_dict(self) -> Dict[str, object]:
        return {
            "released": sorted(self.released),
            "dissolvedGroups": sorted(self.dissolved),
        }


def new_group_id() -> str:
    return f"sg-{secrets.token_hex(4)}"


class SyncGroupManager:
    """Creates, joins, leaves and dissolves sync groups."""

    def __init__(self, settings_store: SettingsStore, client_store: ClientConfigStore):
        self.settings_store = settings_store
        self.client_store = client_store

    @staticmethod
    def _detach(draft: Settings, client_id: str, change: MembershipChange) -> None:
        """Remove a client from its group, dissolving the group if it drops to one member."""
        client = draft.clients[client_id]
        group_id = client.sync_group
        client.sync_group = None
        if not group_id:
            return

        group = draft.sync_groups.get(group_id)
        if group is None:
            return
        if client_id in group.members:
            group.members.remove(client_id)
        change.released[client_id] = group_id

        if len(group.members) <= 1:
            for remaining in group.members:
                if remaining in draft.clients:
                    draft.clients[remaining].sync_group = None
                change.released[remaining] = group_id
            del draft.sync_groups[group_id]
            change.dissolved[group_id] = Path(group.config_path)
            logger.info(f"Dissolved sync group '{group_id}'")

    async def _hand_off(
        self,
        before: Settings,
        draft: Settings,
        change: MembershipChange,
    ) -> None:
        """Copy each released client's former group active set into its managed file."""
        group_sets: Dict[str, ActiveSet] = {}
        for client_id, group_id in change.released.items():
            if client_id not in draft.clients or draft.clients[client_id].sync_group:
                # Deleted, or already moved into another group.
                continue
            if group_id not in group_sets:
                old_group = before.sync_groups.get(group_id)
                if old_group is None:
                    continue
                group_sets[group_id] = await self.client_store.read_path(
                    Path(old_group.config_path)
                )
            await self.client_store.write_path(
                self.client_store.managed_path(client_id), group_sets[group_id]
            )
            logger.debug(f"Handed off sync group '{group_id}' config to '{client_id}'")

    async def _remove_group_files(self, change: MembershipChange) -> None:
        for group_id, path in change.dissolved.items():
            removed = await self.client_store.remove(path)
            if not removed:
                logger.debug(f"Shared file of '{group_id}' was already gone: {path}")

    async def create_or_join(self, client_ids: Sequence[str]) -> Dict[str, object]:
        """
        Put the listed clients into a new sync group.

        The group file is seeded from the first listed client's active set.
        Clients already in other groups are moved; a group they leave behind
        with one member or fewer is dissolved.

        Raises:
            ValidationError: fewer than two distinct ids
            NotFoundError: an id is not a known client
        """
        ordered: List[str] = []
        for client_id in client_ids or []:
            if client_id not in ordered:
                ordered.append(client_id)
        if len(ordered) < 2:
            raise ValidationError(
                "A sync group needs at least two distinct clients",
                details={"clientIds": list(client_ids or [])},
            )

        change = MembershipChange()
        async with self.settings_store.transaction() as draft:
            for client_id in ordered:
                if client_id not in draft.clients:
                    raise NotFoundError("client", client_id)

            before = draft.model_copy(deep=True)
            seed = await self.client_store.read(before, ordered[0])

            group_id = new_group_id()
            while group_id in draft.sync_groups:
                group_id = new_group_id()
            group_path = self.client_store.group_path(group_id)
            await self.client_store.write_path(group_path, seed)

            for client_id in ordered:
                self._detach(draft, client_id, change)
            draft.sync_groups[group_id] = SyncGroup(
                members=ordered, config_path=str(group_path)
            )
            for client_id in ordered:
                draft.clients[client_id].sync_group = group_id

            await self._hand_off(before, draft, change)

        await self._remove_group_files(change)
        logger.info(
            f"Created sync group '{group_id}'",
            extra={"group_id": group_id, "members": ordered},
        )
        return {
            "groupId": group_id,
            "members": ordered,
            "configPath": str(group_path),
            **change.to_dict(),
        }

    async def leave(self, client_id: str) -> Dict[str, object]:
        """Take a client out of its sync group."""
        change = MembershipChange()
        async with self.settings_store.transaction() as draft:
            if client_id not in draft.clients:
                raise NotFoundError("client", client_id)
            group_id = draft.clients[client_id].sync_group
            if draft.group_of(client_id) is None:
                raise ValidationError(
                    f"Client '{client_id}' is not in a sync group",
                    error_code="NOT_IN_GROUP",
                    details={"clientId": client_id},
                )
            before = draft.model_copy(deep=True)
            self._detach(draft, client_id, change)
            await self._hand_off(before, draft, change)

        await self._remove_group_files(change)
        logger.info(f"Client '{client_id}' left sync group '{group_id}'")
        return {"clientId": client_id, "groupId": group_id, **change.to_dict()}

    async def delete_group(self, group_id: str) -> Dict[str, object]:
        """Dissolve a group explicitly, releasing every member."""
        change = MembershipChange()
        async with self.settings_store.transaction() as draft:
            group = draft.sync_groups.get(group_id)
            if group is None:
                raise NotFoundError("sync group", group_id)
            before = draft.model_copy(deep=True)
            for member in list(group.members):
                self._detach(draft, member, change)
            if group_id in draft.sync_groups:
                # Group held a single member; _detach never ran the dissolve.
                del draft.sync_groups[group_id]
                change.dissolved[group_id] = Path(group.config_path)
            await self._hand_off(before, draft, change)

        await self._remove_group_files(change)
        return {"groupId": group_id, **change.to_dict()}

    def detach_client(self, draft: Settings, client_id: str) -> MembershipChange:
        """Apply the dissolution rule for a client about to be removed."""
        change = MembershipChange()
        self._detach(draft, client_id, change)
        return change

    async def finish(
        self, before: Settings, draft: Settings, change: MembershipChange
    ) -> None:
        """Hand-off step for callers that ran ``detach_client`` inside their own transaction."""
        await self._hand_off(before, draft, change)

    async def cleanup(self, change: MembershipChange) -> None:
        await self._remove_group_files(change)

    def list_groups(self, settings: Optional[Settings] = None) -> Dict[str, Dict[str, object]]:
        settings = settings or self.settings_store.current()
        return {
            group_id: group.to_json_dict()
            for group_id, group in settings.sync_groups.items()
        }
