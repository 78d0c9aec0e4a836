"""
Unit tests for sub-project ordering.
"""
from types import SimpleNamespace

import pytest

from studio_portal.core.errors import InvalidInput
from studio_portal.services.ordering import next_position, reorder, validate_permutation


def _items():
    return [SimpleNamespace(id=item_id, position=index) for index, item_id in enumerate("ABC")]


class TestReorder:

    def test_positions_follow_the_given_order(self):
        items = reorder(_items(), ["C", "A", "B"])
        assert {item.id: item.position for item in items} == {"C": 0, "A": 1, "B": 2}
        assert [item.id for item in items] == ["C", "A", "B"]

    def test_positions_stay_dense(self):
        items = reorder(_items(), ["B", "C", "A"])
        assert sorted(item.position for item in items) == [0, 1, 2]

    def test_absent_items_keep_their_position(self):
        items = _items()
        reorder(items, ["B"])
        assert {item.id: item.position for item in items} == {"A": 0, "B": 0, "C": 2}


class TestValidatePermutation:

    def test_full_permutation_passes(self):
        validate_permutation(_items(), ["C", "A", "B"])

    @pytest.mark.parametrize("ordered_ids", [
        ["A", "B"],
        ["A", "B", "C", "D"],
        ["A", "A", "B"],
        [],
    ])
    def test_rejects_anything_else(self, ordered_ids):
        with pytest.raises(InvalidInput):
            validate_permutation(_items(), ordered_ids)


class TestNextPosition:

    def test_appends_after_siblings(self):
        assert next_position(_items()) == 3

    def test_first_item(self):
        assert next_position([]) == 0
