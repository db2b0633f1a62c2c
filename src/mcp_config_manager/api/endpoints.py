"""
REST API endpoints for MCP Config Manager.

Thin handlers: each one calls a single engine operation and wraps the
result. Engine errors propagate to the exception handlers registered by
the server.
"""

import time
from typing import Any, Dict, Optional

from mcp_config_manager import __version__
from mcp_config_manager.api.models import (
    APIResponse, ClientRequest, HealthCheckResponse, LeaveGroupRequest,
    PresetsRequest, ResolvePathRequest, SyncGroupRequest
)
from mcp_config_manager.core.models import SettingsUpdate
from mcp_config_manager.core.reconciler import ReconciliationEngine
from mcp_config_manager.utils.config import Config
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)


class ConfigEndpoints:
    """Main API endpoints controller."""

    def __init__(self, engine: ReconciliationEngine, config: Config):
        self.engine = engine
        self.config = config
        self._start_time = time.time()

    async def health_check(self) -> HealthCheckResponse:
        settings = self.engine.current_settings()
        return HealthCheckResponse(
            success=True,
            message="API is healthy",
            status="healthy",
            version=__version__,
            uptime_seconds=round(time.time() - self._start_time, 3),
            data_dir=str(self.config.get_data_dir()),
            clients=len(settings.clients),
            sync_groups=len(settings.sync_groups),
        )

    # Config views and saves

    async def get_config(
        self, client_id: Optional[str] = None, group_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.engine.view(client_id=client_id, group_id=group_id)

    async def get_client_config(self, client_id: str) -> Dict[str, Any]:
        return await self.engine.client_view(client_id)

    async def save_config(
        self,
        payload: Any,
        client_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> APIResponse:
        result = await self.engine.save(payload, client_id=client_id, group_id=group_id)
        return APIResponse(success=True, message=result.pop("message"), data=result)

    async def reset_config(self, client_id: str) -> APIResponse:
        view = await self.engine.reset(client_id)
        return APIResponse(
            success=True,
            message=f"Configuration for '{client_id}' reset from its original file.",
            data=view,
        )

    async def config_differs(
        self,
        payload: Any,
        client_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self.engine.config_differs(
            payload, client_id=client_id, group_id=group_id
        )

    async def check_configs(self) -> Dict[str, Any]:
        return await self.engine.check_configs_differ()

    # Sync groups

    async def list_sync_groups(self) -> Dict[str, Any]:
        return self.engine.sync_groups.list_groups()

    async def create_sync_group(self, request: SyncGroupRequest) -> APIResponse:
        result = await self.engine.sync_groups.create_or_join(request.client_ids)
        return APIResponse(
            success=True, message=f"Sync group '{result['groupId']}' created", data=result
        )

    async def leave_sync_group(self, request: LeaveGroupRequest) -> APIResponse:
        result = await self.engine.sync_groups.leave(request.client_id)
        return APIResponse(
            success=True,
            message=f"Client '{request.client_id}' left its sync group",
            data=result,
        )

    async def delete_sync_group(self, group_id: str) -> APIResponse:
        result = await self.engine.sync_groups.delete_group(group_id)
        return APIResponse(
            success=True, message=f"Sync group '{group_id}' dissolved", data=result
        )

    # Clients and settings

    async def list_clients(self) -> Dict[str, Any]:
        return await self.engine.list_clients()

    async def upsert_client(self, request: ClientRequest) -> APIResponse:
        client = await self.engine.upsert_client(
            request.id,
            name=request.name,
            config_path=request.config_path,
            enabled=request.enabled,
        )
        return APIResponse(success=True, message=f"Client '{request.id}' saved", data=client)

    async def delete_client(self, client_id: str) -> APIResponse:
        result = await self.engine.delete_client(client_id)
        return APIResponse(success=True, message=f"Client '{client_id}' deleted", data=result)

    async def get_settings(self) -> Dict[str, Any]:
        return self.engine.current_settings().to_json_dict()

    async def update_settings(self, update: SettingsUpdate) -> APIResponse:
        settings = await self.engine.update_settings(update)
        return APIResponse(success=True, message="Settings updated", data=settings)

    async def resolve_path(self, request: ResolvePathRequest) -> Dict[str, Any]:
        return self.engine.resolve_command(request.command)

    # Presets

    async def get_presets(self) -> Dict[str, Any]:
        return await self.engine.presets.read()

    async def save_presets(self, request: PresetsRequest) -> APIResponse:
        presets = await self.engine.presets.write(request.presets)
        return APIResponse(success=True, message="Presets saved successfully.", data=presets)
