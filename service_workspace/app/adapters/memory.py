"""
In-process remote stores.

Used for local runs (``WORKSPACE_ENV=local`` without Google credentials) and
as test doubles. They honour the same contracts as the Google adapters,
including per-request failures inside ``batch_write``, and count every call
so callers can assert on physical call volume.
"""

import re
from collections import Counter
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Set, Tuple
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import RemoteUnavailable
from shared.logging import get_logger
from .base import (
    BatchWriteOutcome,
    NodeKind,
    PermissionsSpec,
    RemoteHierarchicalStore,
    RemoteNodeInfo,
    RemoteTableStore,
    Rows,
    WriteAck,
    WriteRequest,
)

_A1_ROWS = re.compile(r"^[A-Za-z]*(\d+)?(?::[A-Za-z]*(\d+)?)?$")


def split_range_key(key: str) -> Tuple[str, int, Optional[int]]:
    """Split ``Tab!A2:Q10`` into ``("Tab", 2, 10)``; rows are 1-indexed."""
    tab, _, cells = key.partition("!")
    match = _A1_ROWS.match(cells) if cells else None
    if not match:
        return tab, 1, None
    start = int(match.group(1)) if match.group(1) else 1
    end = int(match.group(2)) if match.group(2) else None
    return tab, start, end


class InMemoryTableStore(RemoteTableStore):
    """Tab-oriented table store kept in a dict."""

    name = "memory-table"

    def __init__(self, tabs: Optional[Dict[str, Rows]] = None):
        self.tabs: Dict[str, Rows] = {tab: [list(row) for row in rows] for tab, rows in (tabs or {}).items()}
        self.calls: Counter = Counter()
        self.unavailable_tabs: Set[str] = set()
        self.fail_batch_calls = False
        self.logger = get_logger("workspace.adapters.memory_table")

    def seed(self, tab: str, rows: Rows) -> None:
        """Replace a tab's contents."""
        self.tabs[tab] = [list(row) for row in rows]

    def _check(self, tab: str) -> None:
        if tab in self.unavailable_tabs:
            raise RemoteUnavailable(self.name, f"tab {tab} unavailable", {"tab": tab})

    async def read_range(self, key: str) -> Rows:
        self.calls["read_range"] += 1
        tab, start, end = split_range_key(key)
        self._check(tab)
        rows = self.tabs.get(tab, [])
        selected = rows[start - 1:end] if end is not None else rows[start - 1:]
        return [list(row) for row in selected]

    async def write_range(self, key: str, rows: Rows) -> WriteAck:
        self.calls["write_range"] += 1
        return self._write(WriteRequest(key=key, rows=rows))

    async def append_rows(self, key: str, rows: Rows) -> WriteAck:
        self.calls["append_rows"] += 1
        return self._write(WriteRequest(key=key, rows=rows, append=True))

    async def batch_write(self, requests: Sequence[WriteRequest]) -> List[BatchWriteOutcome]:
        self.calls["batch_write"] += 1
        if self.fail_batch_calls:
            raise RemoteUnavailable(self.name, "batch call rejected", {"requests": len(requests)})

        outcomes: List[BatchWriteOutcome] = []
        for request in requests:
            try:
                outcomes.append(self._write(request))
            except RemoteUnavailable as exc:
                outcomes.append(exc)
        return outcomes

    def _write(self, request: WriteRequest) -> WriteAck:
        tab, start, _ = split_range_key(request.key)
        self._check(tab)
        rows = self.tabs.setdefault(tab, [])
        if request.append:
            first = len(rows) + 1
            rows.extend(list(row) for row in request.rows)
        else:
            first = start
            while len(rows) < start - 1 + len(request.rows):
                rows.append([])
            for offset, row in enumerate(request.rows):
                rows[start - 1 + offset] = list(row)
        last = first + len(request.rows) - 1
        return WriteAck(key=request.key, updated_rows=len(request.rows), updated_range=f"{tab}!{first}:{last}")


class InMemoryHierarchicalStore(RemoteHierarchicalStore):
    """Folder tree kept in dicts, rooted at ``root``."""

    name = "memory-hierarchical"

    def __init__(self, root_id: str = "root"):
        self.root_id = root_id
        self.nodes: Dict[str, RemoteNodeInfo] = {
            root_id: RemoteNodeInfo(node_id=root_id, name="My Drive", parent_id=None)
        }
        self.contents: Dict[str, str] = {}
        self.permissions: Dict[str, PermissionsSpec] = {}
        self.calls: Counter = Counter()
        self.created: List[str] = []
        self.fail_on_create: Set[str] = set()
        self.unavailable = False
        self._sequence = 0

    def _check(self, operation: str, **details) -> None:
        if self.unavailable:
            raise RemoteUnavailable(self.name, f"{operation} failed", details)

    def _require(self, node_id: str) -> RemoteNodeInfo:
        node = self.nodes.get(node_id)
        if node is None:
            raise RemoteUnavailable(self.name, f"unknown node {node_id}", {"node_id": node_id})
        return node

    async def find_child(self, parent_id: str, name: str) -> Optional[str]:
        self.calls["find_child"] += 1
        self._check("find_child", parent_id=parent_id, name=name)
        for node in self.nodes.values():
            if node.parent_id == parent_id and node.name == name:
                return node.node_id
        return None

    async def create_child(
        self,
        parent_id: str,
        name: str,
        kind: NodeKind,
        content: Optional[str] = None
    ) -> str:
        self.calls["create_child"] += 1
        self._check("create_child", parent_id=parent_id, name=name)
        if name in self.fail_on_create:
            raise RemoteUnavailable(self.name, f"create {name} failed", {"parent_id": parent_id, "name": name})
        self._require(parent_id)

        self._sequence += 1
        node_id = f"node-{self._sequence:04d}"
        self.nodes[node_id] = RemoteNodeInfo(node_id=node_id, name=name, parent_id=parent_id, kind=NodeKind(kind))
        if content is not None:
            self.contents[node_id] = content
        self.created.append(node_id)
        return node_id

    async def set_permissions(self, node_id: str, spec: PermissionsSpec) -> None:
        self.calls["set_permissions"] += 1
        self._check("set_permissions", node_id=node_id)
        self._require(node_id)
        self.permissions[node_id] = spec

    async def move(self, node_id: str, new_parent_id: str) -> None:
        self.calls["move"] += 1
        self._check("move", node_id=node_id)
        node = self._require(node_id)
        self._require(new_parent_id)
        self.nodes[node_id] = replace(node, parent_id=new_parent_id)

    async def rename(self, node_id: str, new_name: str) -> None:
        self.calls["rename"] += 1
        self._check("rename", node_id=node_id)
        node = self._require(node_id)
        self.nodes[node_id] = replace(node, name=new_name)

    async def get_node(self, node_id: str) -> Optional[RemoteNodeInfo]:
        self.calls["get_node"] += 1
        self._check("get_node", node_id=node_id)
        return self.nodes.get(node_id)

    def children_of(self, parent_id: str) -> Dict[str, str]:
        """Map child names to ids."""
        return {node.name: node.node_id for node in self.nodes.values() if node.parent_id == parent_id}

    def path_of(self, node_id: str) -> str:
        """Slash-joined names from below the root down to ``node_id``."""
        parts: List[str] = []
        node = self.nodes.get(node_id)
        while node is not None and node.node_id != self.root_id:
            parts.append(node.name)
            node = self.nodes.get(node.parent_id) if node.parent_id else None
        return "/".join(reversed(parts))
