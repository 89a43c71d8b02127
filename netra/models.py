import os
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Dict, List, Optional, Tuple, Union

FOLDER = "folder"
FILE = "file"


@dataclass
class Folder:
    id: str
    name: str
    parent_id: Optional[str] = None
    size: int = 0
    owner_id: Optional[str] = None
    created_at: Optional[str] = None
    is_deleted: bool = False
    is_starred: bool = False
    deleted_at: Optional[str] = None

    kind = FOLDER

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "Folder":
        return cls(
            id=str(row.get("_id") or row.get("id")),
            name=row.get("name") or "",
            parent_id=row.get("parent_id"),
            size=int(row.get("size") or 0),
            owner_id=row.get("owner_id"),
            created_at=row.get("created_at"),
            is_deleted=bool(row.get("is_deleted", False)),
            is_starred=bool(row.get("is_starred", False)),
            deleted_at=row.get("deleted_at"),
        )


@dataclass
class FileItem:
    id: str
    name: str
    mime_type: Optional[str] = None
    size: int = 0
    folder_id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[str] = None
    is_deleted: bool = False
    is_starred: bool = False
    deleted_at: Optional[str] = None

    kind = FILE

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "FileItem":
        return cls(
            id=str(row.get("_id") or row.get("id")),
            name=row.get("name") or "",
            mime_type=row.get("mime_type"),
            size=int(row.get("size") or 0),
            folder_id=row.get("folder_id"),
            owner_id=row.get("owner_id"),
            created_at=row.get("created_at"),
            is_deleted=bool(row.get("is_deleted", False)),
            is_starred=bool(row.get("is_starred", False)),
            deleted_at=row.get("deleted_at"),
        )


DriveItem = Union[Folder, FileItem]


@dataclass(frozen=True)
class FolderNode:
    id: str
    name: str
    children: Tuple["FolderNode", ...] = ()

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "FolderNode":
        return cls(
            id=str(row.get("_id") or row.get("id")),
            name=row.get("name") or "",
            children=tuple(cls.from_dict(child) for child in row.get("children") or []),
        )


@dataclass
class Task:
    task_id: str
    file_name: str
    status: str
    type: str
    progress_percent: float = 0.0
    transferred: int = 0
    transferred_hr: str = ""
    total: int = 0
    total_hr: str = ""
    speed_bytes_per_sec: float = 0.0
    eta_seconds: Optional[float] = None
    eta_friendly: str = ""
    can_cancel: bool = False

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "Task":
        eta = row.get("eta_seconds")
        return cls(
            task_id=str(row.get("task_id")),
            file_name=row.get("file_name") or "",
            status=row.get("status") or "",
            type=row.get("type") or "",
            progress_percent=float(row.get("progress_percent") or 0),
            transferred=int(row.get("transferred") or 0),
            transferred_hr=row.get("transferred_hr") or "",
            total=int(row.get("total") or 0),
            total_hr=row.get("total_hr") or "",
            speed_bytes_per_sec=float(row.get("speed_bytes_per_sec") or 0),
            eta_seconds=float(eta) if eta is not None else None,
            eta_friendly=row.get("eta_friendly") or "",
            can_cancel=bool(row.get("can_cancel", False)),
        )


@dataclass
class StorageUsage:
    total_usage_bytes: int


@dataclass
class Breadcrumb:
    id: str
    name: str


@dataclass
class ShareLink:
    id: str
    url: str


@dataclass
class SearchResult:
    folders: List[Folder] = field(default_factory=list)
    files: List[FileItem] = field(default_factory=list)


@dataclass
class LocalFile:
    """A file picked for upload: its name, byte size and a way to read it."""

    name: str
    size: int
    opener: Callable[[], IO[bytes]]

    def open(self) -> IO[bytes]:
        return self.opener()

    @classmethod
    def from_path(cls, path: str) -> "LocalFile":
        return cls(
            name=os.path.basename(path),
            size=os.path.getsize(path),
            opener=lambda: open(path, "rb"),
        )
