"""Item actions as a closed set of command types.

Each command is a small frozen dataclass; ``execute`` maps every one of them
to its API call and raises ``TypeError`` for anything else, so there is no
free-form action string to get wrong.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from . import api
from .client import DriveClient
from .errors import NetraError, SessionExpiredError, ValidationError
from .models import FOLDER, DriveItem, FolderNode
from .tree import ROOT_ID, compute_disabled_targets, is_valid_target
from .utils import get_logger

logger = get_logger("netra.commands")


@dataclass(frozen=True)
class Star:
    pass


@dataclass(frozen=True)
class Unstar:
    pass


@dataclass(frozen=True)
class MoveToBin:
    pass


@dataclass(frozen=True)
class Restore:
    pass


@dataclass(frozen=True)
class DeletePermanently:
    pass


@dataclass(frozen=True)
class Rename:
    new_name: str


@dataclass(frozen=True)
class Move:
    new_parent_id: Optional[str]


Command = Union[Star, Unstar, MoveToBin, Restore, DeletePermanently, Rename, Move]


@dataclass
class BatchResult:
    succeeded: List[DriveItem] = field(default_factory=list)
    failed: List[Tuple[DriveItem, NetraError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def execute(client: DriveClient, item: DriveItem, command: Command) -> None:
    kind = item.kind
    if isinstance(command, Star):
        api.star_item(client, kind, item.id)
    elif isinstance(command, Unstar):
        api.unstar_item(client, kind, item.id)
    elif isinstance(command, MoveToBin):
        api.bin_item(client, kind, item.id)
    elif isinstance(command, Restore):
        api.restore_item(client, kind, item.id)
    elif isinstance(command, DeletePermanently):
        api.delete_item(client, kind, item.id)
    elif isinstance(command, Rename):
        api.rename_item(client, kind, item.id, command.new_name)
    elif isinstance(command, Move):
        api.move_item(client, kind, item.id, command.new_parent_id)
    else:
        raise TypeError(f"Unknown command: {command!r}")


def execute_batch(client: DriveClient, items: Sequence[DriveItem], command: Command) -> BatchResult:
    """Run ``command`` on every item; one failure does not stop the rest.

    ``SessionExpiredError`` is not a per-item failure and propagates.
    """
    result = BatchResult()
    for item in items:
        try:
            execute(client, item, command)
        except SessionExpiredError:
            raise
        except NetraError as exc:
            logger.error("%s failed for %s %s: %s", type(command).__name__, item.kind, item.id, exc)
            result.failed.append((item, exc))
        else:
            result.succeeded.append(item)
    logger.info("%s: %d item(s) done, %d failed", type(command).__name__, len(result.succeeded), len(result.failed))
    return result


def move_items(
    client: DriveClient,
    items: Sequence[DriveItem],
    target_id: Optional[str],
    tree: Optional[Sequence[FolderNode]] = None,
) -> BatchResult:
    """Move ``items`` under ``target_id`` (None or ``"root"`` for the top level).

    The destination is checked against ``tree`` (fetched when not given)
    first; an illegal one is rejected before any move request is sent.
    """
    folders = [item for item in items if item.kind == FOLDER]
    if folders and target_id not in (None, ROOT_ID):
        disabled = compute_disabled_targets(tree if tree is not None else api.get_folder_tree(client), folders)
        if not is_valid_target(target_id, disabled):
            raise ValidationError(f"Cannot move a folder into itself or one of its subfolders ({target_id}).")
    return execute_batch(client, items, Move(target_id))
