"""
Workspace service for the Trade Operations Workspace Layer.
"""

import sys
import os
from typing import Any, Dict, Optional

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from fastapi import Body
from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError
from shared.metrics import MetricsCollector

from .adapters.base import PermissionsSpec
from .adapters.google_drive import GoogleDriveHierarchicalStore
from .adapters.google_sheets import GoogleSheetsTableStore
from .adapters.memory import InMemoryHierarchicalStore, InMemoryTableStore
from .results import OperationResult, ResultStatus
from .workspace import WorkspaceSync

SERVICE_NAME = "workspace"
SERVICE_PORT = 8020


class ProvisionRequest(BaseModel):
    """Body of ``POST /orders/{identifier}/folder``."""

    client_label: str = Field(..., description="Client name used in the folder name")
    client_email: Optional[str] = Field(None, description="Client granted editor access")
    category: Optional[str] = Field(None, description="Optional top-level category folder")
    product_category: str = Field("", description="Recorded in the order metadata file")
    role: str = Field("User", description="Permissions preset for the order folder")


class SearchRequest(BaseModel):
    """Body of ``POST /search``."""

    range_key: Optional[str] = Field(None, description="A1 range; defaults to the orders range")
    criteria: Dict[str, Any] = Field(default_factory=dict, description="Column name to expected value")


def build_workspace(config: ServiceConfig, metrics: Optional[MetricsCollector] = None) -> WorkspaceSync:
    """Wire Google adapters when credentials are configured, in-memory stores otherwise."""
    if config.google_access_token and config.google_spreadsheet_id:
        table_store = GoogleSheetsTableStore(
            config.google_spreadsheet_id,
            access_token=config.google_access_token,
            timeout=config.google_request_timeout
        )
        hierarchical_store = GoogleDriveHierarchicalStore(
            access_token=config.google_access_token,
            timeout=config.google_request_timeout,
            domain=config.drive_domain
        )
    else:
        table_store = InMemoryTableStore()
        hierarchical_store = InMemoryHierarchicalStore(root_id=config.google_root_folder_id)
    return WorkspaceSync(table_store, hierarchical_store, config=config, metrics=metrics)


class WorkspaceService(BaseService):
    """Workspace service implementation."""

    def __init__(
        self,
        workspace: Optional[WorkspaceSync] = None,
        config: Optional[ServiceConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        config = config or get_config(SERVICE_NAME, SERVICE_PORT)
        if metrics is None and workspace is not None:
            metrics = workspace.metrics
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config, metrics=metrics)

        self.workspace = workspace or build_workspace(self.config, self.metrics)
        self._setup_workspace_routes()

    def _respond(self, result: OperationResult) -> Dict[str, Any]:
        """Serialize a result; error results become layer exceptions."""
        if result.status == ResultStatus.ERROR:
            result.raise_for_error()
        return result.model_dump(mode="json")

    def _setup_workspace_routes(self):
        """Set up workspace-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Trade Operations Workspace Layer - Workspace Service",
                "version": "1.0.0",
                "capabilities": ["caching", "batching", "search", "provisioning", "monitoring"]
            }

        @self.app.get("/stats")
        async def stats():
            """Cache, batch and monitor statistics."""
            return self.workspace.stats()

        @self.app.post("/maintenance")
        async def maintenance():
            """Run the scheduled maintenance pass now."""
            return self._respond(await self.workspace.run_maintenance())

        @self.app.post("/orders/{identifier}/folder")
        async def provision_order_folder(identifier: str, request: ProvisionRequest = Body(...)):
            """Provision (or verify) the folder tree of an order."""
            try:
                permissions = PermissionsSpec.preset(request.role)
            except KeyError:
                raise ValidationError(f"Unknown permissions role: {request.role}", {"role": request.role})
            result = await self.workspace.provision_order(
                identifier,
                request.client_label,
                permissions,
                client_email=request.client_email,
                category=request.category,
                product_category=request.product_category
            )
            return self._respond(result)

        @self.app.post("/search")
        async def search(request: SearchRequest = Body(...)):
            """Multi-column equality search over a cached range."""
            range_key = request.range_key or self.workspace.config.orders_range
            return self._respond(await self.workspace.search(range_key, request.criteria))

    async def _check_dependencies(self):
        """Report the configured remote stores."""
        return {
            "table_store": self.workspace.table_store.name,
            "hierarchical_store": self.workspace.hierarchical_store.name
        }


def create_app():
    """Create workspace service application."""
    service = WorkspaceService()
    return service.app


if __name__ == "__main__":
    service = WorkspaceService()
    service.run()
