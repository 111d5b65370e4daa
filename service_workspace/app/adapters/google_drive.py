"""
Google Drive (v3 REST) hierarchical store adapter.
"""

import json
from typing import Any, Dict, List, Optional
import httpx
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import RemoteUnavailable
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception
from .base import Access, NodeKind, Permission, PermissionsSpec, RemoteHierarchicalStore, RemoteNodeInfo

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
MULTIPART_BOUNDARY = "workspace-layer-upload"
READ_RETRY = RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0)

ROLE_BY_PERMISSION = {
    Permission.VIEW: "reader",
    Permission.COMMENT: "commenter",
    Permission.EDIT: "writer",
}


def escape_query_value(value: str) -> str:
    """Escape a literal for a Drive ``q`` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def mime_type_for(name: str) -> str:
    if name.endswith(".json"):
        return "application/json"
    if name.endswith(".html"):
        return "text/html"
    return "text/plain"


class GoogleDriveHierarchicalStore(RemoteHierarchicalStore):
    """Hierarchical store backed by Drive folders and files."""

    name = "google-drive"

    def __init__(
        self,
        access_token: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        domain: str = "",
        base_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL
    ):
        self.base_url = base_url.rstrip("/")
        self.upload_url = upload_url
        self.domain = domain
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self.client = client or httpx.AsyncClient(timeout=timeout, headers=headers)
        self.logger = get_logger("workspace.adapters.drive")

    async def close(self):
        await self.client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            self.logger.error("Drive request failed", method=method, url=url, error=str(exc))
            raise RemoteUnavailable(self.name, str(exc) or exc.__class__.__name__, {"url": url})

    def _check(self, response: httpx.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            self.logger.error(
                "Drive request rejected",
                url=str(response.request.url),
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RemoteUnavailable(
                self.name,
                f"Unexpected status {response.status_code}",
                {"status_code": response.status_code}
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            self.logger.error(
                "Drive response unreadable",
                url=str(response.request.url),
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RemoteUnavailable(self.name, "Malformed response body", {"status_code": response.status_code})
        return data

    def _node_id(self, data: Dict[str, Any]) -> str:
        if not data.get("id"):
            raise RemoteUnavailable(self.name, "Response carried no file id", {"fields": sorted(data)})
        return data["id"]

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        return self._check(await self._send(method, f"{self.base_url}{path}", **kwargs))

    @retry_on_exception((RemoteUnavailable,), config=READ_RETRY)
    async def find_child(self, parent_id: str, name: str) -> Optional[str]:
        query = f"'{escape_query_value(parent_id)}' in parents and name = '{escape_query_value(name)}' and trashed = false"
        data = await self._request(
            "GET",
            "/files",
            params={"q": query, "fields": "files(id,name)", "pageSize": 1, "spaces": "drive"}
        )
        files = data.get("files", [])
        return self._node_id(files[0]) if files else None

    async def create_child(
        self,
        parent_id: str,
        name: str,
        kind: NodeKind,
        content: Optional[str] = None
    ) -> str:
        if NodeKind(kind) == NodeKind.FOLDER:
            data = await self._request(
                "POST",
                "/files",
                params={"fields": "id"},
                json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
            )
            return self._node_id(data)

        metadata = {"name": name, "parents": [parent_id], "mimeType": mime_type_for(name)}
        body = (
            f"--{MULTIPART_BOUNDARY}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{MULTIPART_BOUNDARY}\r\n"
            f"Content-Type: {metadata['mimeType']}\r\n\r\n"
            f"{content or ''}\r\n"
            f"--{MULTIPART_BOUNDARY}--"
        )
        response = await self._send(
            "POST",
            self.upload_url,
            params={"uploadType": "multipart", "fields": "id"},
            content=body.encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"}
        )
        return self._node_id(self._check(response))

    def _grants(self, spec: PermissionsSpec) -> List[Dict[str, Any]]:
        role = ROLE_BY_PERMISSION[spec.permission]
        grants: List[Dict[str, Any]] = []
        if spec.access == Access.ANYONE_WITH_LINK:
            grants.append({"type": "anyone", "role": role, "allowFileDiscovery": False})
        elif spec.access in (Access.DOMAIN, Access.DOMAIN_WITH_LINK):
            if self.domain:
                grants.append({
                    "type": "domain",
                    "role": role,
                    "domain": self.domain,
                    "allowFileDiscovery": spec.access == Access.DOMAIN
                })
            else:
                self.logger.warning("Domain sharing requested without a configured domain", access=spec.access.value)
        for email in spec.editors:
            grants.append({"type": "user", "role": "writer", "emailAddress": email})
        return grants

    async def set_permissions(self, node_id: str, spec: PermissionsSpec) -> None:
        for grant in self._grants(spec):
            await self._request(
                "POST",
                f"/files/{node_id}/permissions",
                params={"sendNotificationEmail": "false", "fields": "id"},
                json=grant
            )

    async def move(self, node_id: str, new_parent_id: str) -> None:
        current = await self._request("GET", f"/files/{node_id}", params={"fields": "parents"})
        await self._request(
            "PATCH",
            f"/files/{node_id}",
            params={
                "addParents": new_parent_id,
                "removeParents": ",".join(current.get("parents", [])),
                "fields": "id,parents"
            },
            json={}
        )

    async def rename(self, node_id: str, new_name: str) -> None:
        await self._request("PATCH", f"/files/{node_id}", params={"fields": "id,name"}, json={"name": new_name})

    @retry_on_exception((RemoteUnavailable,), config=READ_RETRY)
    async def get_node(self, node_id: str) -> Optional[RemoteNodeInfo]:
        response = await self._send(
            "GET",
            f"{self.base_url}/files/{node_id}",
            params={"fields": "id,name,parents,mimeType,webViewLink"}
        )
        if response.status_code == 404:
            return None
        data = self._check(response)
        parents = data.get("parents") or [None]
        kind = NodeKind.FOLDER if data.get("mimeType") == FOLDER_MIME_TYPE else NodeKind.FILE
        return RemoteNodeInfo(
            node_id=self._node_id(data),
            name=data.get("name", ""),
            parent_id=parents[0],
            kind=kind,
            extra={"web_view_link": data.get("webViewLink")}
        )
