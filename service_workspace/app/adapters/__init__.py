"""
Remote store adapters package.

`base` defines the two narrow collaborator interfaces the core consumes.
`google_sheets` / `google_drive` talk to Google Workspace over httpx, and
`memory` provides in-process stores for local runs and tests.
"""
