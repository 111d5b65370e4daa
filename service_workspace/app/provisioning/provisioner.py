"""
Idempotent folder provisioning in the hierarchical store.

Every step looks a node up before creating it (cache first, then
``find_child``), so re-running any operation with the same arguments ends in
the same tree and issues no further creates. Creates, permission changes and
moves go through the BatchProcessor; lookups go straight to the store.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from pydantic import BaseModel, Field

from shared.config import BaseConfig
from shared.errors import NotFound, ValidationError, WorkspaceLayerException
from shared.logging import get_actor, get_logger
from ..adapters.base import NodeKind, PermissionsSpec, RemoteHierarchicalStore
from ..batching.operations import Operation, StoreKind
from ..batching.processor import BatchProcessor
from ..caching import keys
from ..caching.smart_cache import SmartCache
from ..results import ErrorInfo, ErrorKind, OperationResult
from .identifiers import derive_segments, is_valid_email, sanitize_name
from .tree import (
    ARCHIVE_FOLDER,
    CLIENT_ACCESS_FOLDER,
    ORDER_LAYOUT,
    ORDER_METADATA_FILE,
    ORDERS_FOLDER,
    ROOT_LAYOUT,
    TEMPLATES_FOLDER,
    Folder,
    TreeNode,
)

ARCHIVED_MARKER = "_archived_"


@dataclass(frozen=True)
class ResourceNode:
    """One resolved level of the hierarchy."""
    name: str
    remote_id: str
    parent_id: Optional[str]


@dataclass
class MaterializeReport:
    """Outcome of materializing a tree; ``nodes`` maps relative paths to ids."""
    created: int = 0
    reused: int = 0
    nodes: Dict[str, str] = field(default_factory=dict)


class ProvisionedResource(BaseModel):
    """A provisioned order folder."""

    identifier: str
    path_segments: List[str]
    remote_id: str
    canonical_url: str
    path: str
    subfolders: Dict[str, str] = Field(default_factory=dict)
    path_creates: int = 0
    total_creates: int = 0


class WorkspaceRoots(BaseModel):
    """Ids of the fixed top-level folders."""

    root_id: str
    orders_id: str
    templates_id: str
    archive_id: str


class _StepFailed(Exception):
    """Internal: a create or lookup failed partway through a walk."""

    def __init__(self, error: ErrorInfo):
        self.error = error
        super().__init__(error.message)


def _error_of(exc: Exception) -> ErrorInfo:
    return exc.error if isinstance(exc, _StepFailed) else ErrorInfo.from_exception(exc)


class ResourceProvisioner:
    """Creates order folders, workspace layouts and archives without duplicates."""

    def __init__(
        self,
        store: RemoteHierarchicalStore,
        processor: BatchProcessor,
        cache: SmartCache,
        config: Optional[BaseConfig] = None,
        roots: Optional[WorkspaceRoots] = None,
        root_layout: Tuple[TreeNode, ...] = ROOT_LAYOUT,
        order_layout: Tuple[TreeNode, ...] = ORDER_LAYOUT,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.store = store
        self.processor = processor
        self.cache = cache
        self.config = config or BaseConfig()
        self.roots = roots
        self.root_layout = root_layout
        self.order_layout = order_layout
        self.now = now
        self.logger = get_logger("workspace.provisioner")

    # Lookups and creates

    async def _lookup(self, parent_id: str, name: str) -> Optional[str]:
        cache_key = keys.node_key(parent_id, name)
        node_id = self.cache.get(cache_key)
        if node_id is not None:
            return node_id
        node_id = await self.store.find_child(parent_id, name)
        if node_id is not None:
            self.cache.set(cache_key, node_id, self.config.existence_ttl_ms)
        return node_id

    async def _create(self, parent_id: str, name: str, kind: NodeKind = NodeKind.FOLDER, content: str = "") -> str:
        if kind == NodeKind.FILE:
            operation = Operation.create_file(parent_id, name, content)
        else:
            operation = Operation.create_folder(parent_id, name)
        result = await self.processor.process([operation], StoreKind.HIERARCHICAL)
        item = result.data[0] if result.ok else result.failed[0]
        if not item.success:
            raise _StepFailed(item.error)
        self.logger.info("Node created", parent_id=parent_id, name=name, kind=kind.value, node_id=item.data)
        return item.data

    async def _get_or_create(self, parent_id: str, name: str, kind: NodeKind = NodeKind.FOLDER, content: str = ""):
        """Return ``(node_id, created)``."""
        node_id = await self._lookup(parent_id, name)
        if node_id is not None:
            return node_id, False
        return await self._create(parent_id, name, kind, content), True

    # Paths

    async def ensure_path(self, root_id: str, segments: Sequence[str]) -> OperationResult:
        """Walk ``segments`` below ``root_id``, creating what is missing."""
        names = [sanitize_name(segment, self.config.max_name_length) for segment in segments]
        if any(not name for name in names):
            return OperationResult.failure(
                ErrorKind.VALIDATION, "Path contains a blank segment", {"segments": list(segments)}, created=0
            )

        node = ResourceNode(name="", remote_id=root_id, parent_id=None)
        created = 0
        for position, name in enumerate(names):
            try:
                node_id, was_created = await self._get_or_create(node.remote_id, name)
            except (WorkspaceLayerException, _StepFailed) as exc:
                error = _error_of(exc)
                context = dict(error.context)
                context.update({
                    "last_node": node,
                    "completed_segments": names[:position],
                    "failed_segment": name,
                })
                self.logger.warning("Path walk stopped", failed_segment=name, completed=position, error=error.message)
                return OperationResult.failure(error.kind, error.message, context, created=created)
            created += int(was_created)
            node = ResourceNode(name=name, remote_id=node_id, parent_id=node.remote_id)

        return OperationResult.success(node, created=created)

    async def find_path(self, root_id: str, segments: Sequence[str]) -> OperationResult:
        """Resolve ``segments`` without creating anything."""
        node = ResourceNode(name="", remote_id=root_id, parent_id=None)
        names = [sanitize_name(segment, self.config.max_name_length) for segment in segments]
        for position, name in enumerate(names):
            try:
                node_id = await self._lookup(node.remote_id, name)
            except WorkspaceLayerException as exc:
                return OperationResult.from_exception(exc, {"failed_segment": name})
            if node_id is None:
                return OperationResult.failure(
                    ErrorKind.NOT_FOUND,
                    f"No node named {name}",
                    {"missing_segment": name, "completed_segments": names[:position], "last_node": node}
                )
            node = ResourceNode(name=name, remote_id=node_id, parent_id=node.remote_id)
        return OperationResult.success(node)

    # Trees

    async def materialize_tree(self, parent_id: str, tree: Sequence[TreeNode]) -> OperationResult:
        """Create every folder and marker of ``tree`` that is missing under ``parent_id``."""
        report = MaterializeReport()
        try:
            await self._materialize(parent_id, tree, "", report)
        except (WorkspaceLayerException, _StepFailed) as exc:
            error = _error_of(exc)
            context = dict(error.context)
            context["report"] = report
            return OperationResult.failure(error.kind, error.message, context, created=report.created)
        return OperationResult.success(report, created=report.created)

    async def _materialize(self, parent_id: str, tree: Sequence[TreeNode], prefix: str, report: MaterializeReport):
        for node in tree:
            path = f"{prefix}/{node.name}" if prefix else node.name
            if isinstance(node, Folder):
                node_id, created = await self._get_or_create(parent_id, node.name)
            else:
                node_id, created = await self._get_or_create(parent_id, node.name, NodeKind.FILE, node.content)
            report.nodes[path] = node_id
            if created:
                report.created += 1
            else:
                report.reused += 1
            if isinstance(node, Folder) and node.children:
                await self._materialize(node_id, node.children, path, report)

    # Workspace

    async def initialize_workspace(self, root_name: Optional[str] = None, parent_id: Optional[str] = None) -> OperationResult:
        """Find or create the workspace root and its fixed layout."""
        root_name = root_name or self.config.workspace_root_name
        parent_id = parent_id or self.config.google_root_folder_id

        root = await self.ensure_path(parent_id, [root_name])
        if not root.ok:
            return root
        root_id = root.data.remote_id

        layout = await self.materialize_tree(root_id, self.root_layout)
        if not layout.ok:
            return layout
        nodes = layout.data.nodes
        missing = [name for name in (ORDERS_FOLDER, TEMPLATES_FOLDER, ARCHIVE_FOLDER) if name not in nodes]
        if missing:
            return OperationResult.failure(
                ErrorKind.VALIDATION, "Root layout lacks required folders", {"missing": missing}
            )

        permissions = await self.processor.process(
            [Operation.set_permissions(root_id, PermissionsSpec.preset("Admin"))], StoreKind.HIERARCHICAL
        )
        if not permissions.ok:
            return permissions

        self.roots = WorkspaceRoots(
            root_id=root_id,
            orders_id=nodes[ORDERS_FOLDER],
            templates_id=nodes[TEMPLATES_FOLDER],
            archive_id=nodes[ARCHIVE_FOLDER]
        )
        created = root.meta["created"] + layout.meta["created"]
        self.logger.info("Workspace initialized", root_id=root_id, created=created)
        return OperationResult.success(self.roots, created=created)

    async def _ensure_roots(self) -> OperationResult:
        if self.roots is not None:
            return OperationResult.success(self.roots)
        return await self.initialize_workspace()

    # Orders

    async def provision_resource(
        self,
        identifier: str,
        client_label: str,
        permissions: Optional[PermissionsSpec] = None,
        *,
        client_email: Optional[str] = None,
        category: Optional[str] = None,
        product_category: str = ""
    ) -> OperationResult:
        """Provision the folder tree of one order."""
        try:
            segments = derive_segments(identifier, client_label, category, self.config.max_name_length)
        except ValidationError as exc:
            return OperationResult.from_exception(exc)

        roots = await self._ensure_roots()
        if not roots.ok:
            return roots

        path = await self.ensure_path(roots.data.orders_id, segments)
        if not path.ok:
            return path
        order = path.data
        path_creates = path.meta["created"]

        layout = await self.materialize_tree(order.remote_id, self.order_layout)
        if not layout.ok:
            layout.error.context["order_node"] = order
            return layout
        total_creates = path_creates + layout.meta["created"]

        try:
            metadata = json.dumps({
                "order_id": identifier,
                "client_name": client_label,
                "client_email": client_email or "",
                "product_category": product_category,
                "created_date": self.now().isoformat(),
                "folder_structure": [node.name for node in self.order_layout],
                "status": "Active",
            }, indent=2)
            _, created = await self._get_or_create(order.remote_id, ORDER_METADATA_FILE, NodeKind.FILE, metadata)
            total_creates += int(created)

            operations = [Operation.set_permissions(order.remote_id, self._order_permissions(permissions, client_email))]
            if is_valid_email(client_email):
                client_folder, created = await self._get_or_create(order.remote_id, CLIENT_ACCESS_FOLDER)
                total_creates += int(created)
                operations.append(Operation.set_permissions(client_folder, PermissionsSpec.preset("Client")))
        except (WorkspaceLayerException, _StepFailed) as exc:
            error = _error_of(exc)
            context = dict(error.context)
            context["order_node"] = order
            return OperationResult.failure(error.kind, error.message, context, total_creates=total_creates)

        canonical_url = self.config.folder_url_template.format(id=order.remote_id)
        resource = ProvisionedResource(
            identifier=identifier,
            path_segments=segments,
            remote_id=order.remote_id,
            canonical_url=canonical_url,
            path="/".join(segments),
            subfolders={name: node_id for name, node_id in layout.data.nodes.items() if "/" not in name},
            path_creates=path_creates,
            total_creates=total_creates
        )

        granted = await self.processor.process(operations, StoreKind.HIERARCHICAL)
        action = "Created" if path_creates else "Verified"
        audit = await self.processor.process(
            [Operation.append_rows(self.config.folder_log_range, [[
                self.now().isoformat(), identifier, order.remote_id, canonical_url, action, get_actor()
            ]])],
            StoreKind.TABLE
        )

        self.logger.info(
            "Order folder provisioned",
            identifier=identifier,
            path=resource.path,
            path_creates=path_creates,
            total_creates=total_creates
        )

        meta = {"path_creates": path_creates, "total_creates": total_creates}
        failed = granted.failed + audit.failed
        if failed:
            return OperationResult.partial([resource], failed, **meta)
        return OperationResult.success(resource, **meta)

    def _order_permissions(self, permissions: Optional[PermissionsSpec], client_email: Optional[str]) -> PermissionsSpec:
        spec = permissions or PermissionsSpec.preset("User")
        if is_valid_email(client_email) and client_email not in spec.editors:
            spec = spec.model_copy(update={"editors": spec.editors + [client_email.strip()]})
        return spec

    async def archive_resource(self, node_id: str, *, archived_on: Optional[date] = None) -> OperationResult:
        """Move a node under ``04_Archive/<year>`` and rename it ``<name>_archived_<date>``."""
        archived_on = archived_on or self.now().date()
        roots = await self._ensure_roots()
        if not roots.ok:
            return roots

        try:
            node = await self.store.get_node(node_id)
        except WorkspaceLayerException as exc:
            return OperationResult.from_exception(exc, {"node_id": node_id})
        if node is None:
            return OperationResult.from_exception(NotFound(f"No node with id {node_id}", {"node_id": node_id}))

        year = await self.ensure_path(roots.data.archive_id, [str(archived_on.year)])
        if not year.ok:
            return year
        year_id = year.data.remote_id
        if node.parent_id == year_id and ARCHIVED_MARKER in node.name:
            return OperationResult.success(
                ResourceNode(name=node.name, remote_id=node_id, parent_id=year_id), already_archived=True
            )

        archived_name = f"{node.name}{ARCHIVED_MARKER}{archived_on.isoformat()}"
        result = await self.processor.process(
            [
                Operation.move_node(node_id, year_id, old_parent_id=node.parent_id),
                Operation.rename_node(node_id, archived_name, parent_id=year_id),
            ],
            StoreKind.HIERARCHICAL
        )
        if not result.ok:
            return result

        self.logger.info("Node archived", node_id=node_id, archived_name=archived_name, year=archived_on.year)
        return OperationResult.success(ResourceNode(name=archived_name, remote_id=node_id, parent_id=year_id))
