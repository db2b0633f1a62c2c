"""
FastAPI server for MCP Config Manager.

Routes are registered once on a router that is mounted both at the root
and under ``/api``.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mcp_config_manager import __version__
from mcp_config_manager.api.endpoints import ConfigEndpoints
from mcp_config_manager.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from mcp_config_manager.api.models import (
    APIResponse, ClientRequest, ErrorResponse, HealthCheckResponse,
    LeaveGroupRequest, PresetsRequest, ResolvePathRequest, SyncGroupRequest
)
from mcp_config_manager.core.exceptions import (
    ConfigManagerError, MalformedConfigError, NotFoundError,
    ProtectedClientError, ValidationError, WriteError
)
from mcp_config_manager.core.models import SettingsUpdate
from mcp_config_manager.core.reconciler import ReconciliationEngine
from mcp_config_manager.utils.config import Config, get_config
from mcp_config_manager.utils.logging import get_logger

logger = get_logger(__name__)

# Most specific class first.
STATUS_CODES = (
    (NotFoundError, 404),
    (ProtectedClientError, 403),
    (ValidationError, 400),
    (MalformedConfigError, 422),
    (WriteError, 500),
    (ConfigManagerError, 500),
)


def status_for(exc: ConfigManagerError) -> int:
    for exc_type, status_code in STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


class APIServer:
    """MCP Config Manager API server."""

    def __init__(
        self,
        config: Optional[Config] = None,
        engine: Optional[ReconciliationEngine] = None,
    ):
        """Initialize API server."""
        self.config = config or get_config()
        self.engine = engine or ReconciliationEngine.from_config(self.config)
        self.endpoints = ConfigEndpoints(self.engine, self.config)

        self.app = self._create_app()

        logger.info("API server initialized", extra={
            "data_dir": str(self.config.get_data_dir()),
        })

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        """Manage application lifespan."""
        settings = await self.engine.start()
        logger.info("API server starting up", extra={
            "clients": sorted(settings.clients),
            "sync_clients": settings.sync_clients,
        })
        yield
        logger.info("API server shutting down")

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""
        app = FastAPI(
            title="MCP Config Manager API",
            description="Manage MCP server definitions across client applications",
            version=__version__,
            docs_url="/docs",
            redoc_url="/redoc",
            lifespan=self.lifespan,
        )

        self._add_middleware(app)
        self._add_exception_handlers(app)

        router = APIRouter()
        self._add_routes(router)
        app.include_router(router)
        app.include_router(router, prefix="/api", include_in_schema=False)

        return app

    def _add_middleware(self, app: FastAPI):
        """Add middleware stack to FastAPI app."""
        app.add_middleware(ErrorHandlingMiddleware)
        app.add_middleware(RequestLoggingMiddleware)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.http.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["Content-Type"],
        )

    def _add_exception_handlers(self, app: FastAPI):
        @app.exception_handler(ConfigManagerError)
        async def config_error_handler(request: Request, exc: ConfigManagerError):
            status_code = status_for(exc)
            log = logger.error if status_code >= 500 else logger.warning
            log(f"{request.method} {request.url.path} failed: {exc}", extra={
                "error_code": exc.error_code,
                "status_code": status_code,
            })
            return error_response(status_code, ErrorResponse(
                message=exc.message,
                error_code=exc.error_code or "ERROR",
                details=exc.details,
            ))

        @app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            return error_response(400, ErrorResponse(
                message="Invalid request",
                error_code="VALIDATION_ERROR",
                details={"errors": jsonable_errors(exc)},
            ))

    def _add_routes(self, router: APIRouter):
        """Add API routes."""
        endpoints = self.endpoints

        @router.get("/health", response_model=HealthCheckResponse)
        async def health_check():
            """Health check endpoint."""
            return await endpoints.health_check()

        @router.get("/config")
        async def get_config_view(
            client_id: Optional[str] = Query(default=None, alias="clientId"),
            group_id: Optional[str] = Query(default=None, alias="groupId"),
        ) -> Dict[str, Any]:
            """Client or group view; aggregated over enabled clients when neither is given."""
            return await endpoints.get_config(client_id, group_id)

        @router.get("/config/{client_id}")
        async def get_client_config(client_id: str) -> Dict[str, Any]:
            return await endpoints.get_client_config(client_id)

        @router.post("/config", response_model=APIResponse)
        async def save_config(
            payload: Any = Body(default=None),
            client_id: Optional[str] = Query(default=None, alias="clientId"),
            group_id: Optional[str] = Query(default=None, alias="groupId"),
        ):
            """Save a combined view; entries with ``enabled: true`` become the active set."""
            return await endpoints.save_config(payload, client_id, group_id)

        @router.post("/config/differs")
        async def config_differs(
            payload: Any = Body(default=None),
            client_id: Optional[str] = Query(default=None, alias="clientId"),
            group_id: Optional[str] = Query(default=None, alias="groupId"),
        ) -> Dict[str, Any]:
            """Whether saving the posted view would change the target's active set."""
            return await endpoints.config_differs(payload, client_id, group_id)

        @router.post("/reset-config", response_model=APIResponse)
        async def reset_config(client_id: str = Query(alias="clientId")):
            return await endpoints.reset_config(client_id)

        @router.get("/check-configs")
        async def check_configs() -> Dict[str, Any]:
            """Report whether enabled clients' original files differ."""
            return await endpoints.check_configs()

        @router.get("/sync-groups")
        async def list_sync_groups() -> Dict[str, Any]:
            return await endpoints.list_sync_groups()

        @router.post("/sync-groups", response_model=APIResponse)
        async def create_sync_group(request: SyncGroupRequest):
            return await endpoints.create_sync_group(request)

        @router.post("/sync-groups/leave", response_model=APIResponse)
        async def leave_sync_group(request: LeaveGroupRequest):
            return await endpoints.leave_sync_group(request)

        @router.delete("/sync-groups/{group_id}", response_model=APIResponse)
        async def delete_sync_group(group_id: str):
            return await endpoints.delete_sync_group(group_id)

        @router.get("/clients")
        async def list_clients() -> Dict[str, Any]:
            return await endpoints.list_clients()

        @router.post("/clients", response_model=APIResponse)
        async def upsert_client(request: ClientRequest):
            return await endpoints.upsert_client(request)

        @router.delete("/clients/{client_id}", response_model=APIResponse)
        async def delete_client(client_id: str):
            return await endpoints.delete_client(client_id)

        @router.get("/settings")
        async def get_settings() -> Dict[str, Any]:
            return await endpoints.get_settings()

        @router.post("/settings", response_model=APIResponse)
        async def update_settings(update: SettingsUpdate):
            return await endpoints.update_settings(update)

        @router.get("/presets")
        async def get_presets() -> Dict[str, Any]:
            return await endpoints.get_presets()

        @router.post("/presets", response_model=APIResponse)
        async def save_presets(request: PresetsRequest):
            return await endpoints.save_presets(request)

        @router.post("/resolve-path")
        async def resolve_path(request: ResolvePathRequest) -> Dict[str, Any]:
            return await endpoints.resolve_path(request)

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """Run the API server."""
        import uvicorn

        host = host or self.config.http.host
        port = port or self.config.port

        logger.info("Starting API server", extra={
            "host": host,
            "port": port,
            "docs_url": f"http://{host}:{port}/docs",
        })

        uvicorn.run(
            self.app,
            host=host,
            port=port,
            log_level="debug" if self.config.debug else "info",
        )


def create_api_server(
    config: Optional[Config] = None, engine: Optional[ReconciliationEngine] = None
) -> APIServer:
    """Factory function to create API server."""
    return APIServer(config, engine)
