"""
Workspace Service package for the Trade Operations Workspace Layer.

The service keeps a fast, consistent local view of two rate-limited remote
stores (a spreadsheet-like table store and a folder-like hierarchical
store) while minimizing physical calls:

- app.caching: SmartCache (TTL + frequency eviction) and the cache-first
  range reader.
- app.batching: Typed operations and the chunking/pacing BatchProcessor.
- app.search: Inverted SearchIndex over cached snapshots and TableSearch.
- app.provisioning: Idempotent folder provisioning from order identifiers.
- app.monitoring: PerformanceMonitor wrapping every operation.
- app.adapters: Remote store interfaces plus Google and in-memory adapters.
- app.workspace: WorkspaceSync, the composition layer owning one of each.
- app.main: FastAPI app exposing health, metrics, stats and maintenance.
"""
