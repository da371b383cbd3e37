"""
Order and operator data structures.

Orders and operators are persisted as plain JSON documents with camelCase
keys (id, creationTime, startTime, endTime, operator, pendingStatus), so the
same store can be shared with other clients of the order database.

An order's status is never stored: it is derived from its timestamps and
pending flag every time it is needed (see derive_status).
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Dict, Any

from time_utils import OVERDUE_THRESHOLD, is_overdue


class PendingStatus(str, Enum):
    """Manual hold flag of an order that has not been started yet."""
    TO_BE_PREPARED = "por_preparar"
    PENDING = "pendiente"


class OrderStatus(str, Enum):
    """Derived lifecycle status of an order."""
    TO_BE_PREPARED = "to_be_prepared"
    PENDING_ISSUE = "pending_issue"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StatusDisplay:
    """Display metadata for one status badge."""
    label: str
    color: str


STATUS_DISPLAY: Dict[OrderStatus, StatusDisplay] = {
    OrderStatus.TO_BE_PREPARED: StatusDisplay("Por Preparar", "blue"),
    OrderStatus.PENDING_ISSUE: StatusDisplay("Pendiente", "gray"),
    OrderStatus.IN_PROGRESS: StatusDisplay("En Proceso", "yellow"),
    OrderStatus.COMPLETED: StatusDisplay("Completado", "green"),
}

OVERDUE_COLOR = "red"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp into a naive local datetime.

    Other clients write UTC values like "2025-11-05T11:00:00.000Z"; those are
    converted to local wall-clock time so they compare with datetime.now().
    """
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Operator:
    """An order preparer (id is an external identifier such as a national ID)."""
    id: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Operator':
        return cls(id=str(data['id']), name=str(data.get('name', '')))


@dataclass
class Order:
    """
    A tracked order.

    Attributes:
        id: Order number read from the scanned document
        creation_time: First successful scan
        start_time: When an operator was assigned and preparation started
        end_time: When the order was completed
        operator: Snapshot of the assigned operator, copied at assignment
        pending_status: Hold flag, only meaningful while start_time is None
    """
    id: str
    creation_time: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    operator: Optional[Operator] = None
    pending_status: Optional[PendingStatus] = None

    @property
    def status(self) -> OrderStatus:
        return derive_status(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted document layout."""
        return {
            'id': self.id,
            'creationTime': _format_time(self.creation_time),
            'startTime': _format_time(self.start_time),
            'endTime': _format_time(self.end_time),
            'operator': self.operator.to_dict() if self.operator else None,
            'pendingStatus': self.pending_status.value if self.pending_status else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        """Create from a persisted document; unknown keys are ignored."""
        operator = data.get('operator')
        pending = data.get('pendingStatus')

        return cls(
            id=str(data['id']),
            creation_time=_parse_time(data['creationTime']),
            start_time=_parse_time(data.get('startTime')),
            end_time=_parse_time(data.get('endTime')),
            operator=Operator.from_dict(operator) if operator else None,
            pending_status=PendingStatus(pending) if pending else None,
        )


def derive_status(order: Order) -> OrderStatus:
    """Status of an order, computed from its timestamps and hold flag only."""
    if order.end_time is not None:
        return OrderStatus.COMPLETED
    if order.start_time is not None:
        return OrderStatus.IN_PROGRESS
    if order.pending_status == PendingStatus.PENDING:
        return OrderStatus.PENDING_ISSUE
    return OrderStatus.TO_BE_PREPARED


def is_pre_start(order: Order) -> bool:
    return derive_status(order) in (OrderStatus.TO_BE_PREPARED, OrderStatus.PENDING_ISSUE)


def is_order_overdue(order: Order, now: datetime,
                     threshold: timedelta = OVERDUE_THRESHOLD) -> bool:
    """
    True when a not-yet-started order was created more than `threshold` ago.

    Started and completed orders are never overdue.
    """
    if not is_pre_start(order):
        return False
    return is_overdue(order.creation_time, now, threshold)


def status_display(order: Order, overdue: bool = False) -> StatusDisplay:
    """
    Badge label and color for an order.

    Overdue orders keep their label with a " (Retrasado)" suffix and are red.
    """
    base = STATUS_DISPLAY[derive_status(order)]
    if overdue and is_pre_start(order):
        return StatusDisplay(f"{base.label} (Retrasado)", OVERDUE_COLOR)
    return base
