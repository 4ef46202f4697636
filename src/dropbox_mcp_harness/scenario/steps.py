"""
The fifteen steps of the Dropbox end-to-end scenario.

Each step is a coroutine taking the ScenarioContext and returning a short
detail string for the console. A step fails by raising a HarnessError.
Steps depend on the files created by earlier steps, so they only make sense
in the order of STEPS.
"""

import base64
import binascii
import json
import posixpath
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from ..protocol import AuthRequired, ToolResult
from ..utils.errors import AuthenticationError, ToolError, VerificationError
from .context import ScenarioContext

CONFLICT_MARKER = "path/conflict"

StepFunc = Callable[[ScenarioContext], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class Step:
    name: str
    run: StepFunc
    soft: bool = False  # failure is recorded but does not abort the run


def expect_payload(result: ToolResult, tool: str) -> Any:
    """Return the payload of a result, failing on an unrecovered auth error."""
    if isinstance(result, AuthRequired):
        raise AuthenticationError(f"Tool '{tool}' still unauthorized after token refresh: {result.text}")
    return result.payload


def entry_names(payload: Any) -> List[str]:
    """Names of the entries in a list_files response."""
    entries = payload
    if isinstance(payload, dict):
        entries = payload.get("entries", payload.get("matches", []))
    if not isinstance(entries, list):
        return []

    names = []
    for entry in entries:
        if isinstance(entry, dict):
            entry = entry.get("metadata", entry)
            name = entry.get("name") or posixpath.basename(entry.get("path_display", "") or "")
            if name:
                names.append(name)
        elif isinstance(entry, str):
            names.append(posixpath.basename(entry))
    return names


def _describe_listing(payload: Any) -> str:
    names = entry_names(payload)
    if names:
        return f"{len(names)} entries"
    if isinstance(payload, str):
        return payload.strip().splitlines()[0][:80] if payload.strip() else "empty"
    return "listed"


def _base64_text(payload: Any) -> str:
    if isinstance(payload, dict):
        for key in ("content", "data", "base64"):
            if isinstance(payload.get(key), str):
                return payload[key]
        raise VerificationError(f"Download response has no content field: {sorted(payload)}")
    if isinstance(payload, str):
        return payload.strip()
    if isinstance(payload, int) and not isinstance(payload, bool):
        # all-digit base64 text comes back parsed as a JSON number
        return str(payload)
    raise VerificationError(f"Unexpected download response: {payload!r}")


async def update_token(ctx: ScenarioContext) -> Optional[str]:
    token = await ctx.tokens.read()
    result = await ctx.client.update_token(token)
    expect_payload(result, ctx.client.token_tool)
    return "token accepted"


async def get_account_info(ctx: ScenarioContext) -> Optional[str]:
    payload = expect_payload(await ctx.client.call_tool("get_account_info", {}), "get_account_info")
    if isinstance(payload, dict):
        name = payload.get("name")
        if isinstance(name, dict):
            name = name.get("display_name")
        return str(name or payload.get("email") or "account found")
    return "account found"


async def list_root(ctx: ScenarioContext) -> Optional[str]:
    payload = expect_payload(await ctx.client.call_tool("list_files", {"path": ""}), "list_files")
    return _describe_listing(payload)


async def create_test_folder(ctx: ScenarioContext) -> Optional[str]:
    folder = ctx.settings.folder
    try:
        result = await ctx.client.call_tool("create_folder", {"path": folder})
    except ToolError as e:
        if CONFLICT_MARKER in e.message:
            return f"{folder} already exists"
        raise

    payload = expect_payload(result, "create_folder")
    text = payload if isinstance(payload, str) else json.dumps(payload)
    if CONFLICT_MARKER in text:
        return f"{folder} already exists"
    return f"created {folder}"


async def upload_file(ctx: ScenarioContext) -> Optional[str]:
    encoded = base64.b64encode(ctx.settings.file_content.encode("utf-8")).decode("ascii")
    result = await ctx.client.call_tool(
        "upload_file", {"path": ctx.settings.file_path, "content": encoded}
    )
    expect_payload(result, "upload_file")
    return f"uploaded {ctx.settings.file_path}"


async def get_file_metadata(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("get_file_metadata", {"path": ctx.settings.file_path})
    payload = expect_payload(result, "get_file_metadata")
    if isinstance(payload, dict) and "size" in payload:
        return f"{payload['size']} bytes"
    return "metadata received"


async def download_file(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("download_file", {"path": ctx.settings.file_path})
    encoded = _base64_text(expect_payload(result, "download_file"))

    try:
        content = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise VerificationError(f"Downloaded content is not valid base64 text: {e}", cause=e) from e

    if content != ctx.settings.file_content:
        raise VerificationError(
            f"Downloaded content does not match upload: expected {ctx.settings.file_content!r}, got {content!r}"
        )
    return "content verified"


async def create_sharing_link(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("get_sharing_link", {"path": ctx.settings.file_path})
    payload = expect_payload(result, "get_sharing_link")

    if isinstance(payload, dict) and payload.get("url"):
        return payload["url"]
    if isinstance(payload, str) and payload.strip().startswith("http"):
        return payload.strip()
    raise VerificationError(f"No sharing link in response: {payload!r}")


async def list_test_folder(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("list_files", {"path": ctx.settings.folder})
    return _describe_listing(expect_payload(result, "list_files"))


async def search_files(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("search_files", {
        "query": ctx.settings.search_query,
        "path": ctx.settings.folder,
        "max_results": ctx.settings.search_max_results,
    })
    payload = expect_payload(result, "search_files")
    names = entry_names(payload)
    return f"{len(names)} matches" if names else "search completed"


async def copy_file(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("copy_item", {
        "from_path": ctx.settings.file_path,
        "to_path": ctx.settings.copy_path,
    })
    expect_payload(result, "copy_item")
    return f"copied to {ctx.settings.copy_path}"


async def move_file(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("move_item", {
        "from_path": ctx.settings.copy_path,
        "to_path": ctx.settings.renamed_path,
    })
    expect_payload(result, "move_item")
    return f"moved to {ctx.settings.renamed_path}"


async def list_after_move(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("list_files", {"path": ctx.settings.folder})
    return _describe_listing(expect_payload(result, "list_files"))


async def delete_file(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("delete_item", {"path": ctx.settings.renamed_path})
    expect_payload(result, "delete_item")
    return f"deleted {ctx.settings.renamed_path}"


async def verify_deletion(ctx: ScenarioContext) -> Optional[str]:
    result = await ctx.client.call_tool("list_files", {"path": ctx.settings.folder})
    payload = expect_payload(result, "list_files")

    deleted = ctx.settings.renamed_name
    if isinstance(payload, str):
        still_there = deleted in payload
    else:
        still_there = deleted in entry_names(payload)
    if still_there:
        raise VerificationError(f"{deleted} is still listed after deletion")
    return f"{deleted} is gone"


STEPS = (
    Step("Update Token", update_token),
    Step("Get Account Info", get_account_info),
    Step("List Root Folder", list_root),
    Step("Create Test Folder", create_test_folder),
    Step("Upload File", upload_file),
    Step("Get File Metadata", get_file_metadata),
    Step("Download File", download_file),
    Step("Create Sharing Link", create_sharing_link, soft=True),
    Step("List Test Folder", list_test_folder),
    Step("Search Files", search_files),
    Step("Copy File", copy_file),
    Step("Move File", move_file),
    Step("List Folder After Move", list_after_move),
    Step("Delete File", delete_file),
    Step("Verify Deletion", verify_deletion),
)
