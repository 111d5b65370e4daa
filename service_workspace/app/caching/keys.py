"""
Cache key scheme shared by the reader, search and provisioning layers.

Every key embeds the logical remote resource it was derived from (the tab of
a range key, or the parent id of a node lookup) so that writes can invalidate
by resource rather than by exact key.
"""

import hashlib
import json
from typing import Any, Callable, Mapping

RANGE_PREFIX = "range"
INDEX_PREFIX = "index"
SEARCH_PREFIX = "search"
NODE_PREFIX = "node"


def tab_of(range_key: str) -> str:
    """Tab part of an A1 range key (``Orders!A1:Q`` -> ``Orders``)."""
    return range_key.split("!", 1)[0]


def range_key(key: str) -> str:
    return f"{RANGE_PREFIX}:{tab_of(key)}:{key}"


def index_key(key: str) -> str:
    return f"{INDEX_PREFIX}:{tab_of(key)}:{key}"


def search_key(key: str, criteria: Mapping[str, Any]) -> str:
    """Key for a cached query result; criteria order does not matter."""
    canonical = json.dumps({str(k): str(v) for k, v in criteria.items()}, sort_keys=True)
    digest = hashlib.md5(canonical.encode()).hexdigest()
    return f"{SEARCH_PREFIX}:{tab_of(key)}:{key}:{digest}"


def node_key(parent_id: str, name: str) -> str:
    return f"{NODE_PREFIX}:{parent_id}:{name}"


def references_tab(tab: str) -> Callable[[str], bool]:
    """Predicate matching every range, index and search key of ``tab``."""
    prefixes = tuple(f"{prefix}:{tab}:" for prefix in (RANGE_PREFIX, INDEX_PREFIX, SEARCH_PREFIX))
    return lambda key: key.startswith(prefixes)


def references_node(*node_ids: str) -> Callable[[str], bool]:
    """Predicate matching node lookups under, or resolving to, any of ``node_ids``.

    Node lookup keys are ``node:<parent>:<name>``; the cached value is the
    child id, which the predicate cannot see, so callers that need to drop a
    lookup by child id pass its parent as well.
    """
    parents = tuple(f"{NODE_PREFIX}:{node_id}:" for node_id in node_ids if node_id)
    return lambda key: bool(parents) and key.startswith(parents)
