"""
Unit tests for the Workspace service HTTP surface.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import ServiceConfig
from shared.errors import RemoteUnavailable
from shared.metrics import MetricsCollector
from shared.test_helpers import test_data_factory
from service_workspace.app.adapters.google_drive import GoogleDriveHierarchicalStore
from service_workspace.app.adapters.google_sheets import GoogleSheetsTableStore
from service_workspace.app.adapters.memory import InMemoryHierarchicalStore, InMemoryTableStore
from service_workspace.app.results import ErrorKind, OperationResult
from service_workspace.app.main import SERVICE_NAME, SERVICE_PORT, WorkspaceService, build_workspace
from service_workspace.app.workspace import WorkspaceSync


def make_config(**overrides) -> ServiceConfig:
    settings = {"env": "test", "table_chunk_delay_ms": 0, "hierarchical_chunk_delay_ms": 0}
    settings.update(overrides)
    return ServiceConfig(SERVICE_NAME, SERVICE_PORT, **settings)


class TestWorkspaceService:
    """Test cases for WorkspaceService."""

    @pytest.fixture
    def config(self):
        return make_config()

    @pytest.fixture
    def table_store(self):
        store = InMemoryTableStore()
        store.seed("Order_Management", test_data_factory.order_snapshot())
        return store

    @pytest.fixture
    def hierarchical_store(self):
        return InMemoryHierarchicalStore()

    @pytest.fixture
    def workspace_service(self, config, table_store, hierarchical_store):
        """Create WorkspaceService over in-memory stores."""
        workspace = WorkspaceSync(
            table_store,
            hierarchical_store,
            config=config,
            metrics=MetricsCollector(SERVICE_NAME)
        )
        return WorkspaceService(workspace=workspace, config=config)

    @pytest.fixture
    def client(self, workspace_service):
        """Create test client."""
        return TestClient(workspace_service.app)

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "workspace"
        assert "provisioning" in data["capabilities"]

    def test_health_endpoint(self, client):
        """Test health reports the configured stores."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {
            "table_store": "memory-table",
            "hierarchical_store": "memory-hierarchical"
        }

    def test_metrics_endpoint(self, client):
        """Test prometheus exposition includes request metrics."""
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "cache_hits_total" in response.text

    def test_provision_order_folder(self, client, hierarchical_store):
        """Test provisioning an order folder over HTTP."""
        response = client.post(
            "/orders/ORD-2024-07-01-002/folder",
            json={"client_label": "Acme Ltd", "client_email": "buyer@acme.example"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["data"]["path"] == "2024/Q3/ORD-2024-07-01-002_Acme Ltd"
        assert body["meta"]["path_creates"] == 3
        assert body["data"]["canonical_url"].endswith(body["data"]["remote_id"])

        again = client.post("/orders/ORD-2024-07-01-002/folder", json={"client_label": "Acme Ltd"})
        assert again.json()["meta"] == {"path_creates": 0, "total_creates": 0}

    def test_provision_rejects_malformed_identifier(self, client):
        """Test a malformed identifier is a 400."""
        response = client.post(
            "/orders/ORD-2024-07/folder",
            json={"client_label": "Acme Ltd"},
            headers={"X-Operation-ID": "op-123"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["operation_id"] == "op-123"
        assert body["details"]["identifier"] == "ORD-2024-07"

    def test_provision_rejects_unknown_role(self, client):
        """Test an unknown permissions preset is a 400."""
        response = client.post(
            "/orders/ORD-2024-07-01-002/folder",
            json={"client_label": "Acme Ltd", "role": "Owner"}
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"role": "Owner"}

    def test_provision_requires_client_label(self, client):
        """Test request validation."""
        response = client.post("/orders/ORD-2024-07-01-002/folder", json={})
        assert response.status_code == 422

    def test_search(self, client):
        """Test search over the default orders range."""
        response = client.post("/search", json={"criteria": {"Order_Status": "Delivered"}})

        assert response.status_code == 200
        body = response.json()
        assert [record["row"] for record in body["data"]] == [4, 5]
        assert body["data"][0]["values"]["Client_Name"] == "Northwind Imports"

    def test_search_unavailable_store(self, client, table_store):
        """Test a remote failure is a 503 naming the store."""
        table_store.unavailable_tabs.add("Order_Management")

        response = client.post("/search", json={"criteria": {"Order_Status": "Delivered"}})

        assert response.status_code == 503
        body = response.json()
        assert body["code"] == "REMOTE_UNAVAILABLE"
        assert body["details"]["store"] == "memory-table"
        assert body["details"]["range_key"] == "Order_Management!A:Q"

    def test_maintenance(self, client, table_store):
        """Test the maintenance endpoint logs a summary row."""
        response = client.post("/maintenance")

        assert response.status_code == 200
        assert response.json()["data"]["summary_logged"] is True
        assert len(table_store.tabs["Performance_Monitor"]) == 1

    def test_maintenance_failure_status(self, client, workspace_service):
        """Test an unavailable store during maintenance is a 503."""
        with patch.object(workspace_service.workspace, "run_maintenance", new_callable=AsyncMock) as mock_run:
            mock_run.return_value = OperationResult.failure(
                ErrorKind.REMOTE_UNAVAILABLE, "Sheets down", {"store": "memory-table"}
            )

            response = client.post("/maintenance")

        assert response.status_code == 503
        assert response.json()["details"]["store"] == "memory-table"
        mock_run.assert_awaited_once()

    def test_health_reports_unavailable_store(self, client, workspace_service):
        """Test a failing dependency check makes health a 503."""
        with patch.object(
            workspace_service,
            "_check_dependencies",
            new=AsyncMock(side_effect=RemoteUnavailable("memory-table"))
        ):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "error"

    def test_stats(self, client):
        """Test stats after a search."""
        client.post("/search", json={"criteria": {"Order_Status": "Pending"}})

        response = client.get("/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["monitor"]["total_operations"] == 1
        assert data["cache"]["size"] == 3


class TestBuildWorkspace:
    """Test cases for store selection."""

    def test_in_memory_without_credentials(self):
        """Test local runs fall back to in-memory stores."""
        workspace = build_workspace(make_config(google_root_folder_id="workspace-root"))

        assert isinstance(workspace.table_store, InMemoryTableStore)
        assert isinstance(workspace.hierarchical_store, InMemoryHierarchicalStore)
        assert workspace.hierarchical_store.root_id == "workspace-root"

    def test_google_adapters_with_credentials(self):
        """Test configured credentials select the Google adapters."""
        workspace = build_workspace(make_config(
            google_access_token="token",
            google_spreadsheet_id="sheet-1",
            drive_domain="example.com"
        ))

        assert isinstance(workspace.table_store, GoogleSheetsTableStore)
        assert workspace.table_store.spreadsheet_id == "sheet-1"
        assert isinstance(workspace.hierarchical_store, GoogleDriveHierarchicalStore)
        assert workspace.hierarchical_store.domain == "example.com"
