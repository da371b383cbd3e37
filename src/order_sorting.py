"""
Ordering and status filtering of the order list view.

Orders in progress come first, then those waiting to be prepared, then those
on hold with an issue, then completed ones. Within a group the most recent
order (by the timestamp that matters for that group) is on top.
"""
from datetime import datetime
from enum import Enum
from typing import Iterable, List

from models import Order, OrderStatus, derive_status

_EPOCH = datetime(1970, 1, 1)

STATUS_RANK = {
    OrderStatus.IN_PROGRESS: 4,
    OrderStatus.TO_BE_PREPARED: 3,
    OrderStatus.PENDING_ISSUE: 2,
    OrderStatus.COMPLETED: 1,
}


class StatusFilter(str, Enum):
    """Filters offered above the order list."""
    ALL = "all"
    TO_BE_PREPARED = "to_be_prepared"
    ONGOING = "ongoing"
    PENDING = "pending"
    COMPLETED = "completed"


FILTER_LABELS = {
    StatusFilter.ALL: "Todos",
    StatusFilter.TO_BE_PREPARED: "Por Preparar",
    StatusFilter.ONGOING: "En Proceso",
    StatusFilter.PENDING: "Pendientes",
    StatusFilter.COMPLETED: "Completados",
}

_FILTER_STATUS = {
    StatusFilter.TO_BE_PREPARED: OrderStatus.TO_BE_PREPARED,
    StatusFilter.ONGOING: OrderStatus.IN_PROGRESS,
    StatusFilter.PENDING: OrderStatus.PENDING_ISSUE,
    StatusFilter.COMPLETED: OrderStatus.COMPLETED,
}


def _recency_key(order: Order, status: OrderStatus) -> datetime:
    if status == OrderStatus.IN_PROGRESS:
        return order.start_time
    if status == OrderStatus.COMPLETED:
        return order.end_time
    return order.creation_time


def sort_orders(orders: Iterable[Order]) -> List[Order]:
    """
    Return a new list sorted for display.

    Rank descending (in_progress > to_be_prepared > pending_issue > completed),
    then by start/creation/end time descending depending on the group.
    Python's sort is stable, so remaining ties keep their input order.
    """
    def sort_key(order: Order):
        status = derive_status(order)
        # Negated timestamp gives "newest first" inside an ascending sort
        return (-STATUS_RANK[status], -(_recency_key(order, status) - _EPOCH).total_seconds())

    return sorted(orders, key=sort_key)


def filter_by_status(orders: Iterable[Order], status_filter: StatusFilter) -> List[Order]:
    """Orders matching one of the list view filters."""
    status_filter = StatusFilter(status_filter)
    if status_filter == StatusFilter.ALL:
        return list(orders)

    wanted = _FILTER_STATUS[status_filter]
    return [o for o in orders if derive_status(o) == wanted]
