"""
Provisioning package.

Builds the Trade Operations folder hierarchy in the hierarchical store:

- identifiers: order identifier parsing, path derivation and name
  sanitization.
- tree: typed Folder/Marker layouts (built-in or loaded from YAML).
- provisioner: ResourceProvisioner, which walks and materializes paths
  idempotently and archives finished orders.
"""
