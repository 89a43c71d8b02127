"""Folder-tree snapshot helpers and the move-target guard.

Everything here is pure: the snapshot is fetched by ``api.get_folder_tree``
once per move interaction and passed in. The guard is a client-side
pre-check only; the server still has to reject illegal moves.
"""

from collections import deque
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from .models import FOLDER, FolderNode

ROOT_ID = "root"


def parse_tree(payload: Iterable[Dict[str, Any]]) -> List[FolderNode]:
    return [FolderNode.from_dict(row) for row in payload]


def flatten_tree(tree: Sequence[FolderNode]) -> Dict[str, FolderNode]:
    index: Dict[str, FolderNode] = {}
    pending = deque(tree)
    while pending:
        node = pending.popleft()
        index[node.id] = node
        pending.extend(node.children)
    return index


def compute_disabled_targets(tree: Sequence[FolderNode], moved_items: Iterable[Any]) -> FrozenSet[str]:
    """Ids that must not be chosen as the destination of ``moved_items``.

    Every moved folder disables itself and its whole subtree; moved files
    disable nothing.
    """
    index = flatten_tree(tree)
    disabled = set()
    pending = deque()
    for item in moved_items:
        if getattr(item, "kind", None) != FOLDER:
            continue
        disabled.add(item.id)
        node = index.get(item.id)
        if node is not None:
            pending.append(node)

    while pending:
        node = pending.popleft()
        disabled.add(node.id)
        for child in node.children:
            if child.id not in disabled:
                pending.append(child)
    return frozenset(disabled)


def is_valid_target(target_id: Optional[str], disabled: FrozenSet[str]) -> bool:
    if target_id is None or target_id == ROOT_ID:
        return True
    return target_id not in disabled

