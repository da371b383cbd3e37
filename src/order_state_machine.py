"""
Order lifecycle rules.

States and transitions:

    to_be_prepared <-> pending_issue     manual hold toggle, only before start
    to_be_prepared / pending_issue
                    -> in_progress       operator assignment
    in_progress     -> completed         second scan or explicit finalize
    completed                            terminal

decide_scan() resolves what a scan of an order id means for the current
snapshot. The transition functions return updated copies and never touch the
store; the controller persists whatever they return.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from exceptions import ConflictError
from models import Order, Operator, OrderStatus, PendingStatus, derive_status
from logger import get_logger

logger = get_logger(__name__)


class ScanAction(str, Enum):
    """What a scan of an order id requires."""
    NEW_ORDER_DETECTED = "new_order_detected"
    AWAITING_ASSIGNMENT = "awaiting_assignment"
    AUTO_COMPLETE = "auto_complete"
    ALREADY_COMPLETED = "already_completed"


class InitialChoice(str, Enum):
    """Options offered for an order id scanned for the first time."""
    TO_BE_PREPARED = "por_preparar"
    PENDING = "pendiente"
    ASSIGN = "assign"


@dataclass(frozen=True)
class ScanDecision:
    """
    Outcome of decide_scan().

    Attributes:
        action: Next step for the caller
        order_id: Sanitized order id that was scanned
        order: Existing order, None for NEW_ORDER_DETECTED
    """
    action: ScanAction
    order_id: str
    order: Optional[Order] = None

    @property
    def requires_prompt(self) -> bool:
        return self.action in (ScanAction.NEW_ORDER_DETECTED, ScanAction.AWAITING_ASSIGNMENT)


def find_order(order_id: str, orders: Iterable[Order]) -> Optional[Order]:
    for order in orders:
        if order.id == order_id:
            return order
    return None


def decide_scan(order_id: str, orders: Iterable[Order]) -> ScanDecision:
    """
    Decide the single next action for a scanned order id.

    Rules, in order:
    1. Unknown id            -> NEW_ORDER_DETECTED (ask: prepare / pending / assign)
    2. Not started           -> AWAITING_ASSIGNMENT (ask for an operator)
    3. Started, not finished -> AUTO_COMPLETE (no prompt)
    4. Finished              -> ALREADY_COMPLETED (no mutation)
    """
    existing = find_order(order_id, orders)

    if existing is None:
        action = ScanAction.NEW_ORDER_DETECTED
    elif existing.start_time is None:
        action = ScanAction.AWAITING_ASSIGNMENT
    elif existing.end_time is None:
        action = ScanAction.AUTO_COMPLETE
    else:
        action = ScanAction.ALREADY_COMPLETED

    logger.debug(f"Scan of {order_id} resolved to {action.value}")
    return ScanDecision(action=action, order_id=order_id, order=existing)


def create_pending_order(order_id: str, choice: InitialChoice, now: datetime) -> Order:
    """
    New order put on the board without an operator.

    Raises:
        ConflictError: choice is ASSIGN (use create_started_order)
    """
    if choice == InitialChoice.ASSIGN:
        raise ConflictError("Assigning requires an operator", order_id=order_id)

    return Order(
        id=order_id,
        creation_time=now,
        start_time=None,
        end_time=None,
        operator=None,
        pending_status=PendingStatus(choice.value),
    )


def create_started_order(order_id: str, operator: Optional[Operator], now: datetime) -> Order:
    """New order assigned and started on its first scan."""
    _require_operator(operator, order_id)
    return Order(
        id=order_id,
        creation_time=now,
        start_time=now,
        end_time=None,
        operator=replace(operator),
        pending_status=None,
    )


def assign_operator(order: Order, operator: Optional[Operator], now: datetime) -> Order:
    """
    Start preparation of a waiting order.

    The operator is copied into the order; later edits or deletion of the
    operator do not affect it. The hold flag is kept but no longer matters.

    Raises:
        ConflictError: No operator given, or the order was already started
    """
    _require_operator(operator, order.id)

    if order.start_time is not None:
        raise ConflictError(f"El pedido {order.id} ya está en preparación.", order_id=order.id)

    return replace(order, start_time=now, operator=replace(operator))


def complete_order(order: Order, now: datetime) -> Order:
    """
    Finalize an order in progress.

    Raises:
        ConflictError: The order was never started or is already completed
    """
    status = derive_status(order)

    if status == OrderStatus.COMPLETED:
        raise ConflictError(f"El pedido {order.id} ya fue finalizado.", order_id=order.id)
    if status != OrderStatus.IN_PROGRESS:
        raise ConflictError(f"El pedido {order.id} no se ha iniciado.", order_id=order.id)

    return replace(order, end_time=now)


def set_pending_status(order: Order, pending_status: PendingStatus) -> Order:
    """
    Set the hold flag of a waiting order.

    Returns the order unchanged once preparation has started.
    """
    if order.start_time is not None:
        return order
    return replace(order, pending_status=pending_status)


def toggle_pending_hold(order: Order) -> Order:
    """Flip por_preparar <-> pendiente before start; no-op afterwards."""
    if order.pending_status == PendingStatus.PENDING:
        target = PendingStatus.TO_BE_PREPARED
    else:
        target = PendingStatus.PENDING
    return set_pending_status(order, target)


def _require_operator(operator: Optional[Operator], order_id: str):
    if operator is None:
        raise ConflictError("Seleccione un preparador antes de confirmar.", order_id=order_id)
