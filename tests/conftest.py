"""
Pytest configuration file for Order Tracker tests.

This file sets up the Python path so tests can import the flat modules in
'src', and provides small factories for orders and operators.
"""

import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Run Qt headless when no display is available
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Get the repository root directory (parent of tests directory)
repo_root = Path(__file__).parent.parent

# Add src directory to sys.path (for src modules)
src_dir = repo_root / 'src'
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from models import Operator, Order, PendingStatus  # noqa: E402

# Fixed reference instant used across the suite
NOW = datetime(2025, 11, 5, 12, 0, 0)


def make_operator(operator_id: str = "12345678", name: str = "Ana Pérez") -> Operator:
    return Operator(id=operator_id, name=name)


def make_order(
    order_id: str = "PED-1001",
    created: datetime = None,
    started: datetime = None,
    ended: datetime = None,
    operator: Operator = None,
    pending_status: PendingStatus = None
) -> Order:
    """
    Helper to build an order in any state.

    An operator is attached automatically when `started` is given without one.
    """
    created = created or NOW - timedelta(hours=1)
    if started is not None and operator is None:
        operator = make_operator()

    return Order(
        id=order_id,
        creation_time=created,
        start_time=started,
        end_time=ended,
        operator=operator,
        pending_status=pending_status,
    )


class FakeClock:
    """Manually advanced clock for controller and ticker tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()
