"""
Tree builder for ActionItems.

Converts a flat, parent-referencing item list into an ordered forest of
ActionItemNode. Corrupt parent references never raise: dangling parents
and parent cycles are demoted to roots so the view always renders.
"""

from typing import Dict, Iterable, List, Optional, Set

from actionmap.models.action_item import ActionItem, ActionItemNode

_VISITING = 1
_DONE = 2


def index_items(items: Iterable[ActionItem]) -> Dict[str, ActionItem]:
    """Index items by id. The first occurrence of a duplicated id wins."""
    by_id: Dict[str, ActionItem] = {}
    for item in items:
        by_id.setdefault(item.id, item)
    return by_id


def find_cycle_members(items_by_id: Dict[str, ActionItem]) -> Set[str]:
    """Find every item that sits on a parent cycle.

    Walks up from each item towards its claimed root, marking nodes as
    visiting. Reaching a node already marked visiting in the same walk closes
    a cycle; every node from that point of the walk onward is on it.

    Args:
        items_by_id: Items indexed by id.

    Returns:
        Set of ids of items on a cycle (self-parenting items included).
    """
    state: Dict[str, int] = {}
    on_cycle: Set[str] = set()

    for start in items_by_id:
        if start in state:
            continue

        path: List[str] = []
        position: Dict[str, int] = {}
        current: Optional[str] = start

        while current is not None and current in items_by_id and current not in state:
            state[current] = _VISITING
            position[current] = len(path)
            path.append(current)
            current = items_by_id[current].parent_item_id

        if current is not None and current in position:
            on_cycle.update(path[position[current]:])

        for node_id in path:
            state[node_id] = _DONE

    return on_cycle


def _is_root(item: ActionItem, items_by_id: Dict[str, ActionItem], on_cycle: Set[str]) -> bool:
    parent_id = item.parent_item_id
    if parent_id is None or parent_id not in items_by_id:
        return True
    return item.id in on_cycle


def build_tree(items: Iterable[ActionItem]) -> List[ActionItemNode]:
    """Build an ordered forest from a flat item list.

    Roots are items without a parent, items whose parent is not in the set,
    and items on a parent cycle. Siblings are ordered by (sort_order, id).

    Args:
        items: Items of one map, in any order.

    Returns:
        Root nodes in sibling order; each node holds its ordered children.
    """
    items_by_id = index_items(items)
    on_cycle = find_cycle_members(items_by_id)

    children_of: Dict[str, List[ActionItem]] = {}
    roots: List[ActionItem] = []
    for item in items_by_id.values():
        if _is_root(item, items_by_id, on_cycle):
            roots.append(item)
        else:
            children_of.setdefault(item.parent_item_id, []).append(item)

    roots.sort(key=ActionItem.sort_key)
    for siblings in children_of.values():
        siblings.sort(key=ActionItem.sort_key)

    forest = [ActionItemNode(item, depth=0) for item in roots]

    # Iterative expansion keeps very deep chains off the call stack
    stack = list(forest)
    while stack:
        node = stack.pop()
        for child_item in children_of.get(node.id, []):
            child = ActionItemNode(child_item, depth=node.depth + 1)
            node.add_child(child)
            stack.append(child)

    return forest


def flatten_tree(forest: List[ActionItemNode]) -> List[ActionItemNode]:
    """Flatten a forest to a pre-order node list (display order)."""
    flat: List[ActionItemNode] = []
    for root in forest:
        flat.extend(root.walk())
    return flat


def find_descendant_ids(items: Iterable[ActionItem], item_id: str) -> Set[str]:
    """Collect ids of every descendant of an item (the item itself excluded).

    Tolerates corrupt data: each id is visited at most once.
    """
    children_of: Dict[str, List[str]] = {}
    for item in items:
        if item.parent_item_id is not None:
            children_of.setdefault(item.parent_item_id, []).append(item.id)

    descendants: Set[str] = set()
    pending = list(children_of.get(item_id, []))
    while pending:
        current = pending.pop()
        if current in descendants or current == item_id:
            continue
        descendants.add(current)
        pending.extend(children_of.get(current, []))
    return descendants


def would_create_cycle(
    items: Iterable[ActionItem], item_id: str, new_parent_id: Optional[str]
) -> bool:
    """Check whether re-parenting item_id under new_parent_id closes a cycle."""
    if new_parent_id is None:
        return False
    if new_parent_id == item_id:
        return True
    return new_parent_id in find_descendant_ids(items, item_id)
