"""
In-memory Dropbox MCP server for client and scenario tests.
"""

import base64
import json
import posixpath
from typing import Any, Dict, List, Optional, Set, Tuple

from dropbox_mcp_harness.transport.base import Transport


class FakeDropboxTransport(Transport):
    """Answers tools/call requests from an in-memory Dropbox.

    Every tool except update_access_token requires the current token to be
    ``valid_token``; otherwise the result text carries invalid_access_token,
    the way the real server reports Dropbox auth failures.
    """

    def __init__(
        self,
        valid_token: str = "good-token",
        token: Optional[str] = None,
        sharing_enabled: bool = True,
        existing_folders: Tuple[str, ...] = (),
        errors: Optional[Dict[str, Any]] = None,
        corrupt_download: bool = False,
        ignore_delete: bool = False,
    ):
        super().__init__("fake-dropbox")
        self.valid_token = valid_token
        self.token = token
        self.sharing_enabled = sharing_enabled
        self.errors = errors or {}
        self.corrupt_download = corrupt_download
        self.ignore_delete = ignore_delete
        self.folders: Set[str] = {""} | set(existing_folders)
        self.files: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.requests: List[Dict[str, Any]] = []

    def tool_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def _exchange(self, message: Dict[str, Any]) -> Dict[str, Any]:
        self.requests.append(message)
        name = message["params"]["name"]
        arguments = message["params"]["arguments"]
        self.calls.append((name, arguments))

        if name in self.errors:
            return self._error(message, self.errors[name])

        if name == "update_access_token":
            self.token = arguments["token"]
            return self._text(message, "Access token updated successfully")

        if self.token != self.valid_token:
            return self._text(message, "Dropbox API error: 401 invalid_access_token/...")

        handler = getattr(self, f"_tool_{name}", None)
        if handler is None:
            return self._error(message, f"Unknown tool: {name}", code=-32601)

        try:
            payload = handler(**arguments)
        except LookupError as e:
            return self._error(message, f"Dropbox API error: {e.args[0]}")

        text = payload if isinstance(payload, str) else json.dumps(payload)
        return self._text(message, text)

    def _text(self, message: Dict[str, Any], text: str) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": message["id"],
            "result": {"content": [{"type": "text", "text": text}]},
        }

    def _error(self, message: Dict[str, Any], text: str, code: int = -32603) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": message["id"], "error": {"code": code, "message": text}}

    def _meta(self, path: str, tag: str = "file") -> Dict[str, Any]:
        meta = {".tag": tag, "name": posixpath.basename(path), "path_display": path}
        if tag == "file":
            meta["size"] = len(self.files[path])
        return meta

    def _require_file(self, path: str) -> None:
        if path not in self.files:
            raise LookupError(f"path/not_found/ {path}")

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent == "/":
            parent = ""
        if parent not in self.folders:
            raise LookupError(f"path/not_found/ {parent}")

    def _tool_get_account_info(self):
        return {"name": {"display_name": "Test User"}, "email": "tester@example.com"}

    def _tool_list_files(self, path: str = ""):
        path = path.rstrip("/")
        if path not in self.folders:
            raise LookupError(f"path/not_found/ {path}")
        entries = [self._meta(f, "folder") for f in sorted(self.folders)
                   if f and posixpath.dirname(f) == (path or "/")]
        entries += [self._meta(f) for f in sorted(self.files)
                    if posixpath.dirname(f) == (path or "/")]
        return {"entries": entries, "has_more": False}

    def _tool_create_folder(self, path: str):
        if path in self.folders:
            raise LookupError(f"path/conflict/folder/ {path}")
        self._require_parent(path)
        self.folders.add(path)
        return {"metadata": {"name": posixpath.basename(path), "path_display": path}}

    def _tool_upload_file(self, path: str, content: str):
        self._require_parent(path)
        self.files[path] = base64.b64decode(content)
        return self._meta(path)

    def _tool_get_file_metadata(self, path: str):
        self._require_file(path)
        return self._meta(path)

    def _tool_download_file(self, path: str):
        self._require_file(path)
        data = self.files[path]
        if self.corrupt_download:
            data = data[::-1]
        return base64.b64encode(data).decode("ascii")

    def _tool_get_sharing_link(self, path: str):
        if not self.sharing_enabled:
            raise LookupError("missing_scope/sharing.write")
        self._require_file(path)
        return {"url": f"https://www.dropbox.com/s/fake/{posixpath.basename(path)}?dl=0"}

    def _tool_search_files(self, query: str, path: str = "", max_results: int = 20):
        matches = [{"metadata": self._meta(f)} for f in sorted(self.files)
                   if f.startswith(path + "/") and query in posixpath.basename(f)]
        return {"matches": matches[:max_results]}

    def _tool_copy_item(self, from_path: str, to_path: str):
        self._require_file(from_path)
        if to_path in self.files:
            raise LookupError(f"to/conflict/file/ {to_path}")
        self._require_parent(to_path)
        self.files[to_path] = self.files[from_path]
        return {"metadata": self._meta(to_path)}

    def _tool_move_item(self, from_path: str, to_path: str):
        self._require_file(from_path)
        if to_path in self.files:
            raise LookupError(f"to/conflict/file/ {to_path}")
        self._require_parent(to_path)
        self.files[to_path] = self.files.pop(from_path)
        return {"metadata": self._meta(to_path)}

    def _tool_delete_item(self, path: str):
        self._require_file(path)
        meta = self._meta(path)
        if not self.ignore_delete:
            del self.files[path]
        return {"metadata": meta}
