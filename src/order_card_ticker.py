"""
Per-card timers for the order board.

Each visible order card owns one OrderCardTicker:
- while the order is not started, the overdue flag is re-checked every minute
- while the order is in progress, the live elapsed time is recomputed every second
- completed orders need no timer; the card shows the final preparation time

The ticker only recomputes and emits; formatting rules live in time_utils and
models. Call stop() when the card is removed so no timer outlives it.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from models import Order, OrderStatus, StatusDisplay, derive_status, is_order_overdue, status_display
from time_utils import OVERDUE_THRESHOLD, calculate_duration, elapsed
from logger import get_logger

logger = get_logger(__name__)

OVERDUE_CHECK_MS = 60_000
ELAPSED_TICK_MS = 1_000


class OrderCardTicker(QObject):
    """
    Keeps the overdue badge and elapsed time of one order card current.

    Signals:
        overdue_changed (bool): Overdue flag flipped
        elapsed_changed (str): Displayed elapsed/preparation time changed

    Attributes:
        order (Order): Order currently shown by the card
        is_overdue (bool): Last computed overdue flag
        elapsed_text (str): Last computed elapsed time ("" before start)
    """
    overdue_changed = Signal(bool)
    elapsed_changed = Signal(str)

    def __init__(
        self,
        order: Order,
        clock: Callable[[], datetime] = datetime.now,
        overdue_check_ms: int = OVERDUE_CHECK_MS,
        elapsed_tick_ms: int = ELAPSED_TICK_MS,
        threshold: timedelta = OVERDUE_THRESHOLD,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.order = order
        self.clock = clock
        self.threshold = threshold
        self.is_overdue = False
        self.elapsed_text = ""

        self.overdue_timer = QTimer(self)
        self.overdue_timer.setInterval(overdue_check_ms)
        self.overdue_timer.timeout.connect(self._check_overdue)

        self.elapsed_timer = QTimer(self)
        self.elapsed_timer.setInterval(elapsed_tick_ms)
        self.elapsed_timer.timeout.connect(self._tick)

        self._schedule()

    @classmethod
    def from_config(
        cls,
        order: Order,
        config,
        clock: Callable[[], datetime] = datetime.now,
        parent: Optional[QObject] = None
    ) -> 'OrderCardTicker':
        """Ticker using the [Timers] intervals and [Orders] OverdueHours of an AppConfig."""
        return cls(
            order,
            clock=clock,
            overdue_check_ms=config.overdue_check_seconds * 1000,
            elapsed_tick_ms=config.elapsed_tick_seconds * 1000,
            threshold=timedelta(hours=config.overdue_hours),
            parent=parent
        )

    def update_order(self, order: Order):
        """Show a newer version of the order; timers follow its status."""
        self.order = order
        self._schedule()

    def badge(self) -> StatusDisplay:
        return status_display(self.order, self.is_overdue)

    def stop(self):
        self.overdue_timer.stop()
        self.elapsed_timer.stop()

    def _schedule(self):
        status = derive_status(self.order)

        if status in (OrderStatus.TO_BE_PREPARED, OrderStatus.PENDING_ISSUE):
            self.elapsed_timer.stop()
            self._set_elapsed("")
            self._check_overdue()
            if not self.overdue_timer.isActive():
                self.overdue_timer.start()

        elif status == OrderStatus.IN_PROGRESS:
            self.overdue_timer.stop()
            self._set_overdue(False)
            self._tick()
            if not self.elapsed_timer.isActive():
                self.elapsed_timer.start()

        else:
            self.stop()
            self._set_overdue(False)
            self._set_elapsed(calculate_duration(self.order.start_time, self.order.end_time))

    def _check_overdue(self):
        self._set_overdue(is_order_overdue(self.order, self.clock(), self.threshold))

    def _tick(self):
        self._set_elapsed(elapsed(self.order.start_time, self.clock()))

    def _set_overdue(self, value: bool):
        if value == self.is_overdue:
            return
        self.is_overdue = value
        if value:
            logger.info(f"Order {self.order.id} is overdue")
        self.overdue_changed.emit(value)

    def _set_elapsed(self, text: str):
        if text == self.elapsed_text:
            return
        self.elapsed_text = text
        self.elapsed_changed.emit(text)
