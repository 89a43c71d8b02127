from typing import List, Optional, Any, Dict

import httpx

from endpoints import AUTH, FILES, FOLDERS, SHARE, TASKS, USERS
from .client import DriveClient
from .config import api_root
from .errors import ServerError
from .models import (
    FILE,
    FOLDER,
    Breadcrumb,
    FileItem,
    Folder,
    FolderNode,
    SearchResult,
    ShareLink,
    StorageUsage,
    Task,
)
from .session_store import CredentialPair
from .tree import ROOT_ID, parse_tree
from .utils import response_detail

_ROUTES_BY_KIND = {FOLDER: FOLDERS, FILE: FILES}


def _json_or_raise(resp: httpx.Response, fallback: str = "Request failed") -> Any:
    if not resp.is_success:
        raise ServerError(resp.status_code, response_detail(resp, fallback))
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise ServerError(resp.status_code, f"Non-JSON response: {resp.text[:200]}") from exc


def _call(client: DriveClient, route: Dict[str, str], item_id: Optional[str] = None, **kwargs: Any) -> httpx.Response:
    path = route["path"].format(id=item_id) if item_id is not None else route["path"]
    return client.request(route["method"], path, **kwargs)


def _route_for(kind: str, action: str) -> Dict[str, str]:
    try:
        return _ROUTES_BY_KIND[kind][action]
    except KeyError:
        raise ValueError(f"Unsupported {action!r} for item kind {kind!r}") from None


# --- auth ---


def login(client: DriveClient, username: str, password: str) -> CredentialPair:
    resp = _call(
        client,
        AUTH["token"],
        authenticated=False,
        data={"username": username, "password": password},
    )
    payload = _json_or_raise(resp, "Login failed") or {}
    try:
        access = str(payload["access_token"])
        refresh = str(payload["refresh_token"])
    except (KeyError, TypeError) as exc:
        raise ServerError(resp.status_code, "Login response is missing tokens") from exc
    client.session.set_tokens(access, refresh)
    return client.session.tokens()


def logout(client: DriveClient) -> None:
    client.session.clear()


def signup(client: DriveClient, username: str, email: str, password: str) -> Dict[str, Any]:
    resp = _call(client, AUTH["signup"], json={"username": username, "email": email, "password": password})
    return _json_or_raise(resp, "Signup failed") or {}


def verify_email(client: DriveClient, token: str) -> Dict[str, Any]:
    resp = _call(client, AUTH["verify_email"], authenticated=False, params={"token": token})
    return _json_or_raise(resp, "Email verification failed") or {}


def forgot_password(client: DriveClient, email: str) -> Dict[str, Any]:
    resp = _call(client, AUTH["forgot_password"], json={"email": email})
    return _json_or_raise(resp) or {}


def reset_password(client: DriveClient, token: str, new_password: str) -> Dict[str, Any]:
    resp = _call(client, AUTH["reset_password"], json={"token": token, "new_password": new_password})
    return _json_or_raise(resp, "Password reset failed") or {}


# --- folders ---


def get_storage_usage(client: DriveClient) -> StorageUsage:
    payload = _json_or_raise(_call(client, USERS["storage"])) or {}
    return StorageUsage(total_usage_bytes=int(payload.get("total_usage_bytes", 0)))


def get_folder_path(client: DriveClient, folder_id: str) -> List[Breadcrumb]:
    payload = _json_or_raise(_call(client, FOLDERS["path"], folder_id)) or []
    return [Breadcrumb(id=str(row.get("id") or row.get("_id")), name=row.get("name") or "") for row in payload]


def list_folders(
    client: DriveClient,
    parent_id: Optional[str] = None,
    include_deleted: bool = False,
    is_starred: bool = False,
) -> List[Folder]:
    params = {
        "parent_id": parent_id or ROOT_ID,
        "include_deleted": include_deleted,
        "is_starred": is_starred,
    }
    payload = _json_or_raise(_call(client, FOLDERS["list"], params=params)) or []
    return [Folder.from_dict(row) for row in payload]


def create_folder(client: DriveClient, name: str, parent_id: Optional[str] = None) -> Folder:
    if parent_id == ROOT_ID:
        parent_id = None
    resp = _call(client, FOLDERS["create"], json={"name": name, "parent_id": parent_id})
    return Folder.from_dict(_json_or_raise(resp, "Failed to create folder") or {})


def get_folder_tree(client: DriveClient) -> List[FolderNode]:
    payload = _json_or_raise(_call(client, FOLDERS["tree"]), "Could not load folder tree") or []
    return parse_tree(payload)


# --- files ---


def list_files(
    client: DriveClient,
    folder_id: Optional[str] = None,
    include_deleted: bool = False,
    is_starred: bool = False,
) -> List[FileItem]:
    params = {
        "folder_id": folder_id or ROOT_ID,
        "include_deleted": include_deleted,
        "is_starred": is_starred,
    }
    payload = _json_or_raise(_call(client, FILES["list"], params=params)) or []
    return [FileItem.from_dict(row) for row in payload]


def download_file(client: DriveClient, file_id: str) -> bytes:
    resp = _call(client, FILES["download"], file_id, headers={"Accept": "*/*"})
    if not resp.is_success:
        raise ServerError(resp.status_code, response_detail(resp, "Download failed"))
    return resp.content


def get_preview(client: DriveClient, file_id: str) -> bytes:
    resp = _call(client, FILES["preview"], file_id, headers={"Accept": "*/*"})
    if not resp.is_success:
        raise ServerError(resp.status_code, response_detail(resp, "Failed to fetch preview"))
    return resp.content


def search(client: DriveClient, query: str) -> SearchResult:
    payload = _json_or_raise(_call(client, FILES["search"], params={"q": query})) or {}
    return SearchResult(
        folders=[Folder.from_dict(row) for row in payload.get("folders") or []],
        files=[FileItem.from_dict(row) for row in payload.get("files") or []],
    )


# --- items (files or folders) ---


def bin_item(client: DriveClient, kind: str, item_id: str) -> Any:
    return _json_or_raise(_call(client, _route_for(kind, "bin"), item_id), "Move to bin failed")


def restore_item(client: DriveClient, kind: str, item_id: str) -> Any:
    return _json_or_raise(_call(client, _route_for(kind, "restore"), item_id), "Restore failed")


def delete_item(client: DriveClient, kind: str, item_id: str) -> Any:
    return _json_or_raise(_call(client, _route_for(kind, "delete"), item_id), "Delete failed")


def rename_item(client: DriveClient, kind: str, item_id: str, new_name: str) -> Any:
    resp = _call(client, _route_for(kind, "rename"), item_id, json={"new_name": new_name})
    return _json_or_raise(resp, "Rename failed")


def move_item(client: DriveClient, kind: str, item_id: str, new_parent_id: Optional[str]) -> Any:
    if new_parent_id == ROOT_ID:
        new_parent_id = None
    resp = _call(client, _route_for(kind, "move"), item_id, json={"new_parent_id": new_parent_id})
    return _json_or_raise(resp, "Move failed")


def star_item(client: DriveClient, kind: str, item_id: str) -> Any:
    return _json_or_raise(_call(client, _route_for(kind, "star"), item_id), "Star failed")


def unstar_item(client: DriveClient, kind: str, item_id: str) -> Any:
    return _json_or_raise(_call(client, _route_for(kind, "unstar"), item_id), "Unstar failed")


# --- tasks & sharing ---


def get_tasks(client: DriveClient, user_id: str) -> List[Task]:
    payload = _json_or_raise(_call(client, TASKS["list"], params={"user_id": user_id}), "Failed to fetch tasks") or []
    return [Task.from_dict(row) for row in payload]


def cancel_task(client: DriveClient, task_id: str) -> Any:
    return _json_or_raise(_call(client, TASKS["cancel"], task_id), "Failed to cancel task")


def generate_share_link(client: DriveClient, file_id: str) -> ShareLink:
    payload = _json_or_raise(_call(client, SHARE["generate"], file_id), "Failed to generate link") or {}
    link_id = str(payload.get("_id") or payload.get("id") or "")
    if not link_id:
        raise ServerError(200, "Share response is missing the link id")
    return ShareLink(id=link_id, url=f"{api_root(client.base_url)}/s/{link_id}")
