"""
View projections of a map's items.

Derives the two read-only shapes the presentation layer renders: the
hierarchical tree and the status-partitioned board. Projections never
mutate their input and hold no state beyond a cache for one snapshot.
"""

from typing import Dict, Iterable, List, Optional

from actionmap.managers.tree_builder import build_tree, flatten_tree
from actionmap.models.action_item import ActionItem, ActionItemNode
from actionmap.models.base import ActionItemStatus
from actionmap.models.snapshot import MapSnapshot


def project_tree(items: Iterable[ActionItem]) -> List[ActionItemNode]:
    """Build the tree view over copies of the items."""
    return build_tree([item.model_copy(deep=True) for item in items])


def project_board(items: Iterable[ActionItem]) -> Dict[ActionItemStatus, List[ActionItem]]:
    """Partition items by status.

    Every status is present (possibly empty) and each column is ordered by
    (sort_order, id).
    """
    board: Dict[ActionItemStatus, List[ActionItem]] = {status: [] for status in ActionItemStatus}
    for item in items:
        board[item.status].append(item.model_copy(deep=True))
    for column in board.values():
        column.sort(key=ActionItem.sort_key)
    return board


class ViewProjection:
    """Cached tree and board for one snapshot."""

    def __init__(self, snapshot: MapSnapshot) -> None:
        self.snapshot = snapshot
        self._tree: Optional[List[ActionItemNode]] = None
        self._board: Optional[Dict[ActionItemStatus, List[ActionItem]]] = None

    @property
    def map_id(self) -> str:
        return self.snapshot.map_id

    def tree(self) -> List[ActionItemNode]:
        if self._tree is None:
            self._tree = project_tree(self.snapshot.items)
        return self._tree

    def flat_tree(self) -> List[ActionItemNode]:
        """Tree nodes in display (pre-order) order."""
        return flatten_tree(self.tree())

    def board(self) -> Dict[ActionItemStatus, List[ActionItem]]:
        if self._board is None:
            self._board = project_board(self.snapshot.items)
        return self._board

    def board_dict(self) -> Dict[str, List[dict]]:
        """Board as plain data for JSON output."""
        return {
            status.value: [
                {
                    "id": item.id,
                    "title": item.title,
                    "priority": item.priority.value,
                    "sort_order": item.sort_order,
                    "version": item.version,
                    "progress_rate": item.progress_rate,
                }
                for item in column
            ]
            for status, column in self.board().items()
        }
