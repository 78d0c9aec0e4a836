"""
Ordering Service

Maintains dense, zero-based ``position`` values among sibling sub-projects so that
drag-and-drop reordering is stable.
"""
from typing import Any, Dict, Iterable, List, Sequence

from studio_portal.core.errors import InvalidInput


def validate_permutation(items: Iterable[Any], ordered_ids: Sequence[str]) -> None:
    """
    Ensure ``ordered_ids`` lists every item exactly once.

    Raises:
        InvalidInput: On duplicates, unknown ids or missing ids
    """
    existing = [item.id for item in items]
    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidInput("Order contains duplicate ids")
    if set(ordered_ids) != set(existing):
        unknown = sorted(set(ordered_ids) - set(existing))
        missing = sorted(set(existing) - set(ordered_ids))
        raise InvalidInput(f"Order must list every item once (unknown: {unknown}, missing: {missing})")


def reorder(items: Iterable[Any], ordered_ids: Sequence[str]) -> List[Any]:
    """
    Assign each item its index in ``ordered_ids`` as its position.

    Items whose id is not in ``ordered_ids`` keep whatever position they had; pass a
    full permutation (see validate_permutation) to get a dense order.

    Returns:
        list: The items sorted by their new position
    """
    positions: Dict[str, int] = {item_id: index for index, item_id in enumerate(ordered_ids)}
    items = list(items)
    for item in items:
        if item.id in positions:
            item.position = positions[item.id]
    return sorted(items, key=lambda item: (item.position is None, item.position or 0))


def next_position(items: Iterable[Any]) -> int:
    """Position for an item appended after its siblings."""
    positions = [item.position for item in items if item.position is not None]
    return max(positions) + 1 if positions else 0
