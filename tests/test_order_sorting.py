"""
Tests for order_sorting module.
"""
from datetime import timedelta

import pytest

from conftest import NOW, make_order
from models import PendingStatus
from order_sorting import FILTER_LABELS, StatusFilter, filter_by_status, sort_orders


def _ids(orders):
    return [o.id for o in orders]


@pytest.fixture
def mixed_orders():
    return [
        make_order("done", started=NOW - timedelta(hours=2), ended=NOW - timedelta(hours=1)),
        make_order("hold", pending_status=PendingStatus.PENDING),
        make_order("wait"),
        make_order("run", started=NOW - timedelta(minutes=3)),
    ]


class TestSortOrders:

    def test_one_order_per_status(self, mixed_orders):
        assert _ids(sort_orders(mixed_orders)) == ["run", "wait", "hold", "done"]

    def test_returns_new_list(self, mixed_orders):
        result = sort_orders(mixed_orders)
        assert result is not mixed_orders
        assert _ids(mixed_orders) == ["done", "hold", "wait", "run"]

    def test_in_progress_by_start_time_desc(self):
        orders = [
            make_order("early", started=NOW - timedelta(hours=1)),
            make_order("late", started=NOW - timedelta(minutes=1)),
        ]
        assert _ids(sort_orders(orders)) == ["late", "early"]

    def test_waiting_by_creation_time_desc(self):
        orders = [
            make_order("old", created=NOW - timedelta(days=1)),
            make_order("new", created=NOW - timedelta(minutes=1)),
        ]
        assert _ids(sort_orders(orders)) == ["new", "old"]

    def test_completed_by_end_time_desc(self):
        orders = [
            make_order("first", started=NOW - timedelta(hours=3), ended=NOW - timedelta(hours=2)),
            make_order("second", started=NOW - timedelta(hours=3), ended=NOW - timedelta(hours=1)),
        ]
        assert _ids(sort_orders(orders)) == ["second", "first"]

    def test_ties_keep_input_order(self):
        orders = [make_order("a", created=NOW), make_order("b", created=NOW)]
        assert _ids(sort_orders(orders)) == ["a", "b"]

    def test_empty(self):
        assert sort_orders([]) == []


class TestFilterByStatus:

    @pytest.mark.parametrize("status_filter, expected", [
        (StatusFilter.ALL, ["done", "hold", "wait", "run"]),
        (StatusFilter.TO_BE_PREPARED, ["wait"]),
        (StatusFilter.ONGOING, ["run"]),
        (StatusFilter.PENDING, ["hold"]),
        (StatusFilter.COMPLETED, ["done"]),
    ])
    def test_filters(self, mixed_orders, status_filter, expected):
        assert _ids(filter_by_status(mixed_orders, status_filter)) == expected

    def test_accepts_string_value(self, mixed_orders):
        assert _ids(filter_by_status(mixed_orders, "ongoing")) == ["run"]

    def test_every_filter_has_label(self):
        assert set(FILTER_LABELS) == set(StatusFilter)
