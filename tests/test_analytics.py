"""
Tests for analytics module - dashboard statistics, history and CSV export.
"""
from datetime import date, datetime

import pandas as pd
import pytest

from conftest import make_operator, make_order
from analytics import (
    HISTORY_CSV_COLUMNS, UNASSIGNED_LABEL, compute_dashboard_stats, default_dashboard_range,
    export_history_csv, filter_by_date_range, history_csv_rows, history_export_filename,
    history_orders, orders_by_day, orders_by_operator_name, operator_performance,
)
from models import Order, OrderStatus, PendingStatus
from time_utils import NOT_AVAILABLE

ANA = make_operator("1", "Ana")
LUIS = make_operator("2", "Luis")
EVA = make_operator("3", "Eva")


@pytest.fixture
def operators():
    return [ANA, LUIS, EVA]


@pytest.fixture
def orders():
    return [
        make_order("C1", created=datetime(2025, 11, 5, 9, 0, 0),
                   started=datetime(2025, 11, 5, 9, 5, 30),
                   ended=datetime(2025, 11, 5, 10, 7, 0), operator=ANA),
        make_order("C2", created=datetime(2025, 11, 4, 10, 0, 0),
                   started=datetime(2025, 11, 4, 10, 1, 0),
                   ended=datetime(2025, 11, 4, 10, 11, 0), operator=LUIS),
        make_order("C3", created=datetime(2025, 11, 5, 8, 0, 0),
                   started=datetime(2025, 11, 5, 8, 0, 30),
                   ended=datetime(2025, 11, 5, 8, 20, 30), operator=ANA),
        make_order("RUN", created=datetime(2025, 11, 5, 11, 0, 0),
                   started=datetime(2025, 11, 5, 11, 30, 0), operator=LUIS),
        make_order("WAIT", created=datetime(2025, 11, 5, 11, 50, 0)),
        make_order("HOLD", created=datetime(2025, 11, 5, 11, 40, 0),
                   pending_status=PendingStatus.PENDING),
        make_order("OLD", created=datetime(2025, 10, 20, 9, 0, 0),
                   started=datetime(2025, 10, 20, 9, 1, 0),
                   ended=datetime(2025, 10, 20, 9, 2, 0), operator=LUIS),
    ]


class TestDateRange:

    def test_reference_time_filtering(self, orders):
        selected = filter_by_date_range(orders, date(2025, 11, 5), date(2025, 11, 5))
        assert {o.id for o in selected} == {"C1", "C3", "RUN", "WAIT", "HOLD"}

    def test_end_day_is_inclusive(self):
        late = make_order("L", created=datetime(2025, 11, 5, 23, 59, 59))
        assert filter_by_date_range([late], end=date(2025, 11, 5)) == [late]

    def test_datetime_bounds_are_widened_to_whole_days(self):
        early = make_order("E", created=datetime(2025, 11, 5, 0, 0, 1))
        assert filter_by_date_range([early], start=datetime(2025, 11, 5, 18, 0)) == [early]

    def test_open_bounds(self, orders):
        assert len(filter_by_date_range(orders)) == len(orders)

    def test_default_range_is_last_seven_days(self):
        assert default_dashboard_range(date(2025, 11, 5)) == (date(2025, 10, 30), date(2025, 11, 5))


class TestDashboardStats:

    def test_figures(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))

        assert stats.total_completed == 3
        assert stats.avg_wait_time == "2m 20s"
        assert stats.avg_prep_time == "30m 30s"

    def test_status_counts_cover_whole_range(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))

        assert stats.status_counts == {
            OrderStatus.COMPLETED: 3,
            OrderStatus.IN_PROGRESS: 1,
            OrderStatus.TO_BE_PREPARED: 1,
            OrderStatus.PENDING_ISSUE: 1,
        }

    def test_status_distribution(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))

        labels = [(s.label, s.count) for s in stats.status_distribution]
        assert labels == [("Completados", 3), ("En Proceso", 1), ("Por Preparar", 1), ("Pendientes", 1)]
        assert stats.status_distribution[0].proportion == pytest.approx(0.5)

    def test_distribution_omits_empty_statuses(self):
        stats = compute_dashboard_stats([make_order("W")], [])
        assert [s.status for s in stats.status_distribution] == [OrderStatus.TO_BE_PREPARED]

    def test_orders_by_day(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))
        assert [(p.label, p.value) for p in stats.orders_by_day] == [("04/11", 1), ("05/11", 2)]

    def test_orders_by_day_is_chronological_across_years(self):
        orders = [
            make_order("J", started=datetime(2026, 1, 2, 9), ended=datetime(2026, 1, 2, 10)),
            make_order("D", started=datetime(2025, 12, 31, 9), ended=datetime(2025, 12, 31, 10)),
        ]
        assert [p.label for p in orders_by_day(orders)] == ["31/12", "02/01"]

    def test_orders_by_operator_name(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))
        assert [(p.label, p.value) for p in stats.orders_by_operator] == [("Ana", 2), ("Luis", 1)]

    def test_removed_operator_still_charted(self):
        gone = make_operator("77", "Gone")
        order = make_order("G", started=datetime(2025, 11, 5, 9), ended=datetime(2025, 11, 5, 10),
                           operator=gone)

        assert [p.label for p in orders_by_operator_name([order])] == ["Gone"]
        assert operator_performance([order], [ANA]) == []

    def test_unassigned_label(self):
        order = Order(id="U", creation_time=datetime(2025, 11, 5, 8),
                      start_time=datetime(2025, 11, 5, 9), end_time=datetime(2025, 11, 5, 10))
        assert orders_by_operator_name([order])[0].label == UNASSIGNED_LABEL

    def test_operator_performance(self, orders, operators):
        stats = compute_dashboard_stats(orders, operators, date(2025, 11, 1), date(2025, 11, 5))

        rollup = [(p.name, p.total_orders, p.avg_prep_time) for p in stats.operator_performance]
        assert rollup == [("Ana", 2, "40m 45s"), ("Luis", 1, "10m 0s")]

    def test_averages_ignore_unfinished_orders(self, operators):
        orders = [
            make_order("RUN", created=datetime(2025, 11, 5, 8), started=datetime(2025, 11, 5, 11)),
            make_order("C", created=datetime(2025, 11, 5, 9), started=datetime(2025, 11, 5, 9, 0, 10),
                       ended=datetime(2025, 11, 5, 9, 0, 50)),
        ]
        stats = compute_dashboard_stats(orders, operators)

        assert stats.avg_wait_time == "10s"
        assert stats.avg_prep_time == "40s"

    def test_empty(self):
        stats = compute_dashboard_stats([], [])

        assert stats.total_completed == 0
        assert stats.avg_wait_time == NOT_AVAILABLE
        assert stats.avg_prep_time == NOT_AVAILABLE
        assert stats.status_distribution == []
        assert stats.orders_by_day == []
        assert stats.orders_by_operator == []
        assert stats.operator_performance == []

    def test_to_dict_uses_plain_values(self, orders, operators):
        data = compute_dashboard_stats(orders, operators).to_dict()

        assert data['status_counts']['completed'] == 4
        assert data['status_distribution'][0]['status'] == "completed"


class TestHistory:

    def test_only_completed_orders(self, orders):
        assert {o.id for o in history_orders(orders)} == {"C1", "C2", "C3", "OLD"}

    def test_operator_filter_and_sort(self, orders):
        assert [o.id for o in history_orders(orders, operator_id="1")] == ["C1", "C3"]
        assert [o.id for o in history_orders(orders, operator_id="1", newest_first=False)] == ["C3", "C1"]

    def test_date_filter_uses_completion_day(self, orders):
        selected = history_orders(orders, start=date(2025, 11, 5), end=date(2025, 11, 5))
        assert [o.id for o in selected] == ["C1", "C3"]

    def test_unknown_operator(self, orders):
        assert history_orders(orders, operator_id="nobody") == []


class TestCsvExport:

    def test_rows(self, orders):
        row = history_csv_rows([orders[0]])[0]

        assert list(row) == HISTORY_CSV_COLUMNS
        assert row == {
            'ID Pedido': "C1",
            'Creación': "05/11, 09:00:00",
            'Inicio Preparación': "05/11, 09:05:30",
            'Fin Preparación': "05/11, 10:07:00",
            'T. Espera': "5m 30s",
            'T. Preparación': "1h 1m",
            'ID Preparador': "1",
            'Nombre Preparador': "Ana",
        }

    def test_missing_values_are_not_available(self):
        row = history_csv_rows([make_order("W")])[0]

        assert row['Inicio Preparación'] == NOT_AVAILABLE
        assert row['T. Preparación'] == NOT_AVAILABLE
        assert row['Nombre Preparador'] == NOT_AVAILABLE

    def test_export_file(self, orders, tmp_path):
        path = export_history_csv(history_orders(orders), tmp_path / "out" / "history.csv")

        assert path.exists()
        df = pd.read_csv(path, dtype=str)
        assert list(df.columns) == HISTORY_CSV_COLUMNS
        assert list(df['ID Pedido']) == ["C1", "C3", "C2", "OLD"]
        assert df.loc[0, 'T. Preparación'] == "1h 1m"

    def test_export_filename(self):
        assert history_export_filename(date(2025, 11, 5)) == "historial_pedidos_2025-11-05.csv"
