"""
Batching package.

Turns many logical remote operations into few physical calls:

- operations: the closed OperationKind enum and one typed payload per kind.
- processor: BatchProcessor, which chunks, paces and dispatches operations
  and isolates failures per item.
"""
