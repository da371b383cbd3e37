"""
Order Tracker - the controller between the scanner, the store and the views.

OrderTracker owns the only mutable state of the application: the latest
snapshot of orders and operators and the scan decision waiting for the user,
if any. Every business rule lives in the pure modules it calls
(identifier_sanitizer, order_state_machine, order_sorting, analytics).

Scan flow:
    handle_scan(image)
      -> vision client extracts text       (AuthError blocks, others are notices)
      -> sanitize_order_id                  (ValidationError is a notice)
      -> decide_scan against the snapshot
           NEW_ORDER_DETECTED   -> decision_required, then choose_initial_action()
           AWAITING_ASSIGNMENT  -> decision_required, then confirm_operator()
           AUTO_COMPLETE        -> end_time saved immediately
           ALREADY_COMPLETED    -> notice, nothing saved

The store pushes a new snapshot after each write; the tracker never edits its
own list in place, it only replaces it from snapshots.
"""
import threading
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Callable, List, Optional

from PySide6.QtCore import QObject, Signal

from analytics import (
    ALL_OPERATORS, DashboardStats, compute_dashboard_stats, default_dashboard_range,
    export_history_csv, history_export_filename, history_orders,
)
from exceptions import (
    AuthError, ConflictError, ListenError, OrderTrackerError, PersistenceError,
)
from identifier_sanitizer import sanitize_order_id
from models import Operator, Order, PendingStatus, is_order_overdue
from operator_manager import OperatorManager
from order_sorting import StatusFilter, filter_by_status, sort_orders
from order_state_machine import (
    InitialChoice, ScanAction, ScanDecision, assign_operator, complete_order,
    create_pending_order, create_started_order, decide_scan, find_order,
    set_pending_status, toggle_pending_hold,
)
from order_store import BaseStore, ORDERS, OPERATORS
from time_utils import OVERDUE_THRESHOLD
from logger import get_logger, set_operator_context, set_order_context, clear_logging_context

logger = get_logger(__name__)

NO_OPERATORS_MESSAGE = (
    "No hay preparadores definidos. Vaya a la pestaña 'Preparadores' para agregar uno primero."
)


@dataclass
class PendingPrompt:
    """
    A scan waiting for the user's answer.

    Attributes:
        order_id: Sanitized order id that was scanned
        is_new_order: True while the initial action (prepare / pending / assign)
                      has not been chosen; False once an operator is expected
    """
    order_id: str
    is_new_order: bool


class OrderTracker(QObject):
    """
    Snapshot owner and scan workflow controller.

    Signals:
        orders_changed (list): Sorted orders after every snapshot
        operators_changed (list): Operators sorted by name after every snapshot
        decision_required (object): PendingPrompt the UI must answer
        notice (str): Dismissible message (bad scan, save failure, ...)
        auth_required (str): Vision credentials missing/invalid; scanning is blocked
        fatal_error (str): Data cannot be loaded; nothing else can be shown

    Attributes:
        store (BaseStore): Persistence gateway for orders and operators
        vision_client: Object with extract_order_id(image_bytes, mime_type)
        operator_manager (OperatorManager): Operator registry
        orders (List[Order]): Latest snapshot, display-sorted
        pending_prompt (Optional[PendingPrompt]): Decision waiting for the user
        vision_ready (bool): False after an authentication failure
        fatal_message (Optional[str]): Set once a store subscription failed
    """
    orders_changed = Signal(list)
    operators_changed = Signal(list)
    decision_required = Signal(object)
    notice = Signal(str)
    auth_required = Signal(str)
    fatal_error = Signal(str)

    def __init__(
        self,
        store: BaseStore,
        vision_client,
        clock: Callable[[], datetime] = datetime.now,
        overdue_threshold=OVERDUE_THRESHOLD,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.store = store
        self.vision_client = vision_client
        self.clock = clock
        self.overdue_threshold = overdue_threshold
        self.operator_manager = OperatorManager(store)

        self.orders: List[Order] = []
        self.pending_prompt: Optional[PendingPrompt] = None
        self.vision_ready = True
        self.fatal_message: Optional[str] = None

        self._scan_lock = threading.Lock()
        self._unsubscribers: List[Callable[[], None]] = []

        logger.info("OrderTracker initialized")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def operators(self) -> List[Operator]:
        return self.operator_manager.operators

    def start(self):
        """Subscribe to both collections; listen failures become fatal_error."""
        self._unsubscribers.append(
            self.store.listen(ORDERS, self._on_orders_snapshot, self._on_listen_error)
        )
        self._unsubscribers.append(
            self.store.listen(OPERATORS, self._on_operators_snapshot, self._on_listen_error)
        )

    def stop(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        logger.info("OrderTracker stopped")

    def _on_orders_snapshot(self, documents: List[dict]):
        orders = []
        for document in documents:
            try:
                orders.append(Order.from_dict(document))
            except (KeyError, ValueError, TypeError) as e:
                logger.error(f"Skipping malformed order document {document.get('id')}: {e}")

        self.orders = sort_orders(orders)
        logger.debug(f"Orders snapshot: {len(self.orders)} orders")
        self.orders_changed.emit(list(self.orders))

    def _on_operators_snapshot(self, documents: List[dict]):
        operators = self.operator_manager.replace_snapshot(documents)
        logger.debug(f"Operators snapshot: {len(operators)} operators")
        self.operators_changed.emit(list(operators))

    def _on_listen_error(self, error: ListenError):
        logger.critical(f"Store subscription failed: {error}")
        message = error.get_display_message()
        # The first failure is the one shown
        if self.fatal_message is None:
            self.fatal_message = message
        self.fatal_error.emit(message)

    # ------------------------------------------------------------------
    # Error routing
    # ------------------------------------------------------------------

    def _report(self, error: OrderTrackerError):
        """Send an error to the right channel: auth block or dismissible notice."""
        if isinstance(error, AuthError):
            logger.error(f"Vision authentication failed: {error}")
            self.vision_ready = False
            self.auth_required.emit(error.get_display_message())
            return

        logger.warning(f"{type(error).__name__}: {error}")
        self.notice.emit(error.get_display_message())

    def _save(self, order: Order) -> bool:
        try:
            self.store.upsert(ORDERS, order.to_dict())
            return True
        except PersistenceError as e:
            logger.error(f"Error saving order {order.id}: {e}")
            self.notice.emit("No se pudo guardar el pedido.")
            return False

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def set_vision_client(self, vision_client):
        """Install a (re)configured vision client and unblock scanning."""
        self.vision_client = vision_client
        self.vision_ready = True
        logger.info("Vision client configured")

    def handle_scan(self, image_bytes: bytes, mime_type: str) -> Optional[ScanDecision]:
        """
        Process one photo of an order document.

        Returns:
            The ScanDecision applied, or None when the scan was refused or failed
            (the reason is emitted through notice / auth_required).

        Raises:
            ConflictError: Another scan is being processed or waits for an answer
        """
        if not self.vision_ready:
            logger.info("Scan ignored: vision credentials not configured")
            return None

        if self.pending_prompt is not None:
            raise ConflictError(
                f"Termine la acción pendiente del pedido {self.pending_prompt.order_id} antes de escanear otro.",
                order_id=self.pending_prompt.order_id
            )

        if not self.operators:
            self.notice.emit(NO_OPERATORS_MESSAGE)
            logger.warning("Scan refused: no operators defined")
            return None

        if not self._scan_lock.acquire(blocking=False):
            raise ConflictError("Ya se está procesando otro escaneo.")

        try:
            raw_text = self.vision_client.extract_order_id(image_bytes, mime_type)
            order_id = sanitize_order_id(raw_text)
            set_order_context(order_id)

            decision = decide_scan(order_id, self.orders)
            return self._apply_decision(decision)

        except OrderTrackerError as e:
            self._report(e)
            return None

        finally:
            clear_logging_context()
            self._scan_lock.release()

    def _apply_decision(self, decision: ScanDecision) -> Optional[ScanDecision]:
        if decision.action == ScanAction.NEW_ORDER_DETECTED:
            logger.info(f"New order detected: {decision.order_id}")
            self._prompt(PendingPrompt(decision.order_id, is_new_order=True))

        elif decision.action == ScanAction.AWAITING_ASSIGNMENT:
            logger.info(f"Order {decision.order_id} waiting for operator selection")
            self._prompt(PendingPrompt(decision.order_id, is_new_order=False))

        elif decision.action == ScanAction.AUTO_COMPLETE:
            completed = complete_order(decision.order, self.clock())
            if not self._save(completed):
                return None
            logger.info(f"Order {decision.order_id} completed")

        else:
            self.notice.emit(f"El pedido {decision.order_id} ya fue finalizado.")
            logger.warning(f"Order {decision.order_id} already completed")

        return decision

    def _prompt(self, prompt: PendingPrompt):
        self.pending_prompt = prompt
        self.decision_required.emit(prompt)

    # ------------------------------------------------------------------
    # Answers to prompts
    # ------------------------------------------------------------------

    def choose_initial_action(self, choice: InitialChoice) -> bool:
        """
        Answer the new-order prompt.

        TO_BE_PREPARED / PENDING create the order right away; ASSIGN turns the
        prompt into an operator selection. If another client created the same
        order while the prompt was open, the prompt is dropped and nothing is
        written.

        Returns:
            True if the choice was applied
        """
        prompt = self.pending_prompt
        if prompt is None or not prompt.is_new_order:
            self._report(ConflictError("No hay un pedido nuevo esperando una acción."))
            return False

        choice = InitialChoice(choice)
        if choice == InitialChoice.ASSIGN:
            self._prompt(PendingPrompt(prompt.order_id, is_new_order=False))
            return True

        if find_order(prompt.order_id, self.orders) is not None:
            logger.warning(f"Order {prompt.order_id} was created elsewhere while waiting for an answer")
            self.pending_prompt = None
            self._report(ConflictError(
                f"El pedido {prompt.order_id} ya fue registrado. Escanéelo de nuevo.",
                order_id=prompt.order_id
            ))
            return False

        order = create_pending_order(prompt.order_id, choice, self.clock())
        if not self._save(order):
            return False

        self.pending_prompt = None
        logger.info(f"Order {order.id} created as {choice.value}")
        return True

    def confirm_operator(self, operator_id: Optional[str]) -> bool:
        """
        Answer the operator selection prompt and start the order.

        Confirming without a selected (known) operator is rejected and the
        prompt stays open.

        Returns:
            True if the order was started
        """
        prompt = self.pending_prompt
        if prompt is None or prompt.is_new_order:
            self._report(ConflictError("No hay un pedido esperando la asignación de un preparador."))
            return False

        operator = self.operator_manager.get_operator(operator_id)
        now = self.clock()

        try:
            existing = find_order(prompt.order_id, self.orders)
            if existing is not None:
                order = assign_operator(existing, operator, now)
            else:
                order = create_started_order(prompt.order_id, operator, now)
        except ConflictError as e:
            self._report(e)
            return False

        if not self._save(order):
            return False

        self.pending_prompt = None
        set_operator_context(operator.id)
        logger.info(f"Order {order.id} started by {operator.name}")
        clear_logging_context()
        return True

    def cancel_pending(self):
        """Dismiss the current prompt without changing anything."""
        if self.pending_prompt is not None:
            logger.info(f"Prompt for order {self.pending_prompt.order_id} cancelled")
        self.pending_prompt = None

    # ------------------------------------------------------------------
    # Manual actions
    # ------------------------------------------------------------------

    def _get_order(self, order_id: str) -> Optional[Order]:
        order = find_order(order_id, self.orders)
        if order is None:
            self._report(ConflictError(f"El pedido {order_id} no existe.", order_id=order_id))
        return order

    def set_pending_status(self, order_id: str, status: PendingStatus) -> bool:
        """Put a waiting order on hold or back to "to be prepared"."""
        order = self._get_order(order_id)
        if order is None:
            return False

        updated = set_pending_status(order, PendingStatus(status))
        if updated is order or updated == order:
            return False
        return self._save(updated)

    def toggle_pending_hold(self, order_id: str) -> bool:
        """Flip the hold flag of a waiting order; started orders are left alone."""
        order = self._get_order(order_id)
        if order is None:
            return False

        updated = toggle_pending_hold(order)
        if updated is order:
            return False
        return self._save(updated)

    def finalize_order(self, order_id: str) -> bool:
        """Complete an in-progress order without scanning it again."""
        order = self._get_order(order_id)
        if order is None:
            return False

        try:
            completed = complete_order(order, self.clock())
        except ConflictError as e:
            self._report(e)
            return False
        return self._save(completed)

    def clear_history(self) -> int:
        """
        Delete every completed order.

        Returns:
            Number of orders removed (0 on failure)
        """
        try:
            removed = self.store.delete_completed(ORDERS)
        except PersistenceError as e:
            logger.error(f"Error clearing completed orders: {e}")
            self.notice.emit("No se pudo limpiar el historial.")
            return 0

        logger.info(f"History cleared: {removed} orders removed")
        return removed

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def add_operator(self, operator_id: str, name: str) -> Optional[Operator]:
        try:
            return self.operator_manager.add_operator(operator_id, name)
        except OrderTrackerError as e:
            self._report(e)
            return None

    def update_operator(self, operator_id: str, name: str) -> Optional[Operator]:
        try:
            return self.operator_manager.update_operator(operator_id, name)
        except OrderTrackerError as e:
            self._report(e)
            return None

    def remove_operator(self, operator_id: str) -> bool:
        try:
            return self.operator_manager.remove_operator(operator_id)
        except OrderTrackerError as e:
            self._report(e)
            return False

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_orders(self, status_filter: StatusFilter = StatusFilter.ALL) -> List[Order]:
        return filter_by_status(self.orders, status_filter)

    def is_overdue(self, order: Order) -> bool:
        return is_order_overdue(order, self.clock(), self.overdue_threshold)

    def dashboard(self, start: Optional[date] = None, end: Optional[date] = None) -> DashboardStats:
        """Dashboard stats; without bounds, the last seven days."""
        if start is None and end is None:
            start, end = default_dashboard_range(self.clock().date())
        return compute_dashboard_stats(self.orders, self.operators, start, end)

    def history(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        operator_id: str = ALL_OPERATORS,
        newest_first: bool = True
    ) -> List[Order]:
        return history_orders(self.orders, start, end, operator_id, newest_first)

    def export_history(
        self,
        output_dir: Path,
        start: Optional[date] = None,
        end: Optional[date] = None,
        operator_id: str = ALL_OPERATORS,
        newest_first: bool = True
    ) -> Optional[Path]:
        """
        Export the filtered history to CSV in output_dir.

        Returns:
            Path of the written file, None if there was nothing to export
        """
        orders = self.history(start, end, operator_id, newest_first)
        if not orders:
            self.notice.emit("No se encontraron pedidos para los filtros seleccionados.")
            return None

        path = Path(output_dir) / history_export_filename(self.clock().date())
        try:
            return export_history_csv(orders, path)
        except OSError as e:
            logger.error(f"Error exporting history: {e}", exc_info=True)
            self.notice.emit("No se pudo exportar el historial.")
            return None
