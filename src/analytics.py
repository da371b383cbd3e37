"""
Analytics - dashboard statistics and order history.

Everything here is computed from scratch on the snapshot passed in; nothing
is cached between calls. The dashboard and the history view share the same
date range filter:

    reference time = end_time if the order is completed, else creation_time
    included when   start_of_day(start) <= reference <= end_of_day(end)

A missing bound leaves that side open.
"""
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Dict, Any, Union

import pandas as pd

from models import Order, Operator, OrderStatus, STATUS_DISPLAY, derive_status
from time_utils import (
    NOT_AVAILABLE, DAY_LABEL_FORMAT, calculate_duration, duration_ms,
    format_datetime, format_duration_ms, start_of_day, end_of_day,
)
from logger import get_logger

logger = get_logger(__name__)

DateLike = Union[date, datetime]

ALL_OPERATORS = "all"
UNASSIGNED_LABEL = "No asignado"
DASHBOARD_DEFAULT_DAYS = 7

HISTORY_CSV_COLUMNS = [
    'ID Pedido',
    'Creación',
    'Inicio Preparación',
    'Fin Preparación',
    'T. Espera',
    'T. Preparación',
    'ID Preparador',
    'Nombre Preparador',
]

# Pie chart order
STATUS_CHART_ORDER = [
    (OrderStatus.COMPLETED, "Completados"),
    (OrderStatus.IN_PROGRESS, "En Proceso"),
    (OrderStatus.TO_BE_PREPARED, "Por Preparar"),
    (OrderStatus.PENDING_ISSUE, "Pendientes"),
]


@dataclass
class ChartPoint:
    """One bar of a bar chart."""
    label: str
    value: int


@dataclass
class StatusSlice:
    """One slice of the status distribution."""
    status: OrderStatus
    label: str
    count: int
    proportion: float
    color: str


@dataclass
class OperatorPerformance:
    """Completed orders and mean preparation time of one operator."""
    id: str
    name: str
    total_orders: int
    avg_prep_time: str


@dataclass
class DashboardStats:
    """
    Everything the dashboard shows for a date range.

    Attributes:
        total_completed: Completed orders in range
        avg_wait_time: Mean creation -> start time of completed orders ("N/A" if none)
        avg_prep_time: Mean start -> end time of completed orders ("N/A" if none)
        status_counts: Orders per derived status over the whole filtered set
        status_distribution: Non-empty statuses with their share of the set
        orders_by_day: Completed orders per calendar day of completion
        orders_by_operator: Completed orders per operator name
        operator_performance: Per known operator rollup, busiest first
    """
    total_completed: int = 0
    avg_wait_time: str = NOT_AVAILABLE
    avg_prep_time: str = NOT_AVAILABLE
    status_counts: Dict[OrderStatus, int] = field(default_factory=dict)
    status_distribution: List[StatusSlice] = field(default_factory=list)
    orders_by_day: List[ChartPoint] = field(default_factory=list)
    orders_by_operator: List[ChartPoint] = field(default_factory=list)
    operator_performance: List[OperatorPerformance] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status_counts'] = {s.value: c for s, c in self.status_counts.items()}
        for item in data['status_distribution']:
            item['status'] = item['status'].value
        return data


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())


def reference_time(order: Order) -> datetime:
    """Timestamp used for date filtering: completion if completed, else creation."""
    return order.end_time if order.end_time is not None else order.creation_time


def filter_by_date_range(
    orders: Iterable[Order],
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None
) -> List[Order]:
    """
    Orders whose reference time falls in [start_of_day(start), end_of_day(end)].

    Args:
        orders: Orders to filter
        start: First day included (None for no lower bound)
        end: Last day included (None for no upper bound)
    """
    lower = start_of_day(_as_datetime(start)) if start is not None else None
    upper = end_of_day(_as_datetime(end)) if end is not None else None

    result = []
    for order in orders:
        ref = reference_time(order)
        if lower is not None and ref < lower:
            continue
        if upper is not None and ref > upper:
            continue
        result.append(order)
    return result


def filter_by_operator(orders: Iterable[Order], operator_id: Optional[str] = ALL_OPERATORS) -> List[Order]:
    """Orders assigned to operator_id; all orders for "all" or None."""
    if operator_id is None or operator_id == ALL_OPERATORS:
        return list(orders)
    return [o for o in orders if o.operator is not None and o.operator.id == operator_id]


def completed_orders(orders: Iterable[Order]) -> List[Order]:
    return [o for o in orders if o.end_time is not None]


def _mean_duration(values: List[float]) -> str:
    if not values:
        return NOT_AVAILABLE
    return format_duration_ms(sum(values) / len(values))


def average_wait_time(orders: Iterable[Order]) -> str:
    """Mean creation -> start time over the completed orders only."""
    waits = [duration_ms(o.creation_time, o.start_time) for o in completed_orders(orders)]
    return _mean_duration([w for w in waits if w is not None])


def average_prep_time(orders: Iterable[Order]) -> str:
    """Mean start -> end time over the completed orders only."""
    preps = [duration_ms(o.start_time, o.end_time) for o in completed_orders(orders)]
    return _mean_duration([p for p in preps if p is not None])


def status_counts(orders: Iterable[Order]) -> Dict[OrderStatus, int]:
    """Orders per derived status; every status is present, possibly with 0."""
    counts = {status: 0 for status in OrderStatus}
    for order in orders:
        counts[derive_status(order)] += 1
    return counts


def status_distribution(orders: Iterable[Order]) -> List[StatusSlice]:
    """Share of each status over the orders; empty statuses are left out."""
    counts = status_counts(orders)
    total = sum(counts.values())

    slices = []
    for status, label in STATUS_CHART_ORDER:
        count = counts[status]
        if count == 0:
            continue
        slices.append(StatusSlice(
            status=status,
            label=label,
            count=count,
            proportion=count / total,
            color=STATUS_DISPLAY[status].color,
        ))
    return slices


def orders_by_day(orders: Iterable[Order]) -> List[ChartPoint]:
    """Completed orders per completion day ("dd/mm"), in chronological order."""
    per_day: Dict[date, int] = defaultdict(int)
    for order in completed_orders(orders):
        per_day[order.end_time.date()] += 1

    return [
        ChartPoint(label=day.strftime(DAY_LABEL_FORMAT), value=count)
        for day, count in sorted(per_day.items())
    ]


def orders_by_operator_name(orders: Iterable[Order]) -> List[ChartPoint]:
    """
    Completed orders per operator name, busiest first.

    Uses the operator snapshot stored on each order, so operators that have
    since been removed still appear.
    """
    per_name: Dict[str, int] = defaultdict(int)
    for order in completed_orders(orders):
        name = order.operator.name if order.operator else UNASSIGNED_LABEL
        per_name[name] += 1

    points = [ChartPoint(label=name, value=count) for name, count in per_name.items()]
    points.sort(key=lambda p: p.value, reverse=True)
    return points


def operator_performance(orders: Iterable[Order], operators: Iterable[Operator]) -> List[OperatorPerformance]:
    """
    Rollup per known operator over the completed orders.

    Operators without completed orders are omitted; the result is sorted by
    number of orders, highest first.
    """
    done = completed_orders(orders)
    rollup = []

    for operator in operators:
        own = [o for o in done if o.operator is not None and o.operator.id == operator.id]
        if not own:
            continue

        preps = [duration_ms(o.start_time, o.end_time) for o in own]
        rollup.append(OperatorPerformance(
            id=operator.id,
            name=operator.name,
            total_orders=len(own),
            avg_prep_time=_mean_duration([p for p in preps if p is not None]),
        ))

    rollup.sort(key=lambda p: p.total_orders, reverse=True)
    return rollup


def default_dashboard_range(today: date) -> tuple:
    """Last seven days including today."""
    return today - timedelta(days=DASHBOARD_DEFAULT_DAYS - 1), today


def compute_dashboard_stats(
    orders: Iterable[Order],
    operators: Iterable[Operator],
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None
) -> DashboardStats:
    """
    Dashboard statistics for a date range.

    Averages, per-day and per-operator figures use completed orders only;
    the status distribution covers every order in range.
    """
    in_range = filter_by_date_range(orders, start, end)
    done = completed_orders(in_range)

    stats = DashboardStats(
        total_completed=len(done),
        avg_wait_time=average_wait_time(done),
        avg_prep_time=average_prep_time(done),
        status_counts=status_counts(in_range),
        status_distribution=status_distribution(in_range),
        orders_by_day=orders_by_day(done),
        orders_by_operator=orders_by_operator_name(done),
        operator_performance=operator_performance(done, operators),
    )

    logger.debug(
        f"Dashboard stats: {len(in_range)} orders in range, {stats.total_completed} completed"
    )
    return stats


def history_orders(
    orders: Iterable[Order],
    start: Optional[DateLike] = None,
    end: Optional[DateLike] = None,
    operator_id: Optional[str] = ALL_OPERATORS,
    newest_first: bool = True
) -> List[Order]:
    """
    Completed orders for the history view, filtered and sorted by completion time.

    Args:
        orders: Current snapshot
        start: First completion day included
        end: Last completion day included
        operator_id: Operator id, or "all"
        newest_first: Sort by end_time descending (True) or ascending
    """
    selected = filter_by_operator(completed_orders(orders), operator_id)
    selected = filter_by_date_range(selected, start, end)
    selected.sort(key=lambda o: o.end_time, reverse=newest_first)
    return selected


def history_csv_rows(orders: Iterable[Order]) -> List[Dict[str, str]]:
    """
    Project orders to CSV rows (one dict per order, keyed by HISTORY_CSV_COLUMNS).

    Timestamps use format_datetime; anything missing is "N/A".
    """
    rows = []
    for order in orders:
        rows.append({
            'ID Pedido': order.id,
            'Creación': format_datetime(order.creation_time),
            'Inicio Preparación': format_datetime(order.start_time),
            'Fin Preparación': format_datetime(order.end_time),
            'T. Espera': calculate_duration(order.creation_time, order.start_time),
            'T. Preparación': calculate_duration(order.start_time, order.end_time),
            'ID Preparador': order.operator.id if order.operator else NOT_AVAILABLE,
            'Nombre Preparador': order.operator.name if order.operator else NOT_AVAILABLE,
        })
    return rows


def history_export_filename(today: date) -> str:
    return f"historial_pedidos_{today.isoformat()}.csv"


def export_history_csv(orders: Iterable[Order], output_path: Path) -> Path:
    """
    Write the CSV projection of orders to output_path.

    Returns:
        The path written
    """
    output_path = Path(output_path)
    rows = history_csv_rows(orders)

    df = pd.DataFrame(rows, columns=HISTORY_CSV_COLUMNS)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, encoding='utf-8')

    logger.info(f"Exported {len(df)} orders to {output_path}")
    return output_path
