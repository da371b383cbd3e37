"""
Command line front end for Order Tracker.

Usage:
    python src/main.py scan photo.jpg
    python src/main.py orders --filter ongoing
    python src/main.py finalize PED-1042
    python src/main.py operators add 12345678 "Ana Pérez"
    python src/main.py dashboard --start 2025-11-01 --end 2025-11-07
    python src/main.py history --operator 12345678 --export exports/
    python src/main.py clear-history

Every command builds the same controller the board uses, against the JSON
store under [Storage] DataPath.
"""
import sys
import argparse
from datetime import date, timedelta
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from app_config import AppConfig
from exceptions import OrderTrackerError
from order_card_ticker import OrderCardTicker
from order_sorting import StatusFilter
from order_state_machine import InitialChoice
from order_store import JsonFileStore
from order_tracker import OrderTracker
from time_utils import NOT_AVAILABLE, calculate_duration, format_datetime
from vision_client import GeminiVisionClient, read_scan_image
from logger import configure_logging, get_logger

logger = get_logger(__name__)

INITIAL_CHOICES = {
    '1': InitialChoice.TO_BE_PREPARED,
    '2': InitialChoice.PENDING,
    '3': InitialChoice.ASSIGN,
}


def build_tracker(config: AppConfig) -> OrderTracker:
    store = JsonFileStore(config.orders_store_path)
    tracker = OrderTracker(
        store,
        GeminiVisionClient.from_config(config),
        overdue_threshold=timedelta(hours=config.overdue_hours)
    )

    tracker.notice.connect(lambda message: print(f"! {message}"))
    tracker.auth_required.connect(lambda message: print(f"!! {message}"))
    tracker.fatal_error.connect(lambda message: print(f"!! {message}"))

    tracker.start()
    return tracker


def _ask(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        return ''


def _answer_prompt(tracker: OrderTracker):
    """Resolve scan prompts interactively until none is left."""
    while tracker.pending_prompt is not None:
        prompt = tracker.pending_prompt

        if prompt.is_new_order:
            print(f"Nuevo pedido {prompt.order_id}:")
            print("  1) Por preparar   2) Pendiente   3) Asignar preparador")
            answer = INITIAL_CHOICES.get(_ask("Opción (vacío para cancelar): "))
            if answer is None:
                tracker.cancel_pending()
                print("Cancelado.")
                return
            tracker.choose_initial_action(answer)
            continue

        print(f"Asignar preparador al pedido {prompt.order_id}:")
        for operator in tracker.operators:
            print(f"  {operator.id}  {operator.name}")
        operator_id = _ask("Cédula (vacío para cancelar): ")
        if not operator_id:
            tracker.cancel_pending()
            print("Cancelado.")
            return
        tracker.confirm_operator(operator_id)


def cmd_scan(tracker: OrderTracker, args) -> int:
    image_bytes, mime_type = read_scan_image(args.image)
    decision = tracker.handle_scan(image_bytes, mime_type)
    if decision is None:
        return 1

    if decision.requires_prompt:
        _answer_prompt(tracker)
    else:
        print(f"Pedido {decision.order_id}: {decision.action.value}")
    return 0


def cmd_orders(tracker: OrderTracker, args) -> int:
    for order in tracker.visible_orders(StatusFilter(args.filter)):
        ticker = OrderCardTicker.from_config(order, args.app_config, clock=tracker.clock)
        timing = ticker.elapsed_text or format_datetime(order.creation_time)
        operator = order.operator.name if order.operator else NOT_AVAILABLE
        print(f"{order.id:<20} {ticker.badge().label:<28} {operator:<24} {timing}")
        ticker.stop()
    return 0


def cmd_finalize(tracker: OrderTracker, args) -> int:
    return 0 if tracker.finalize_order(args.order_id) else 1


def cmd_hold(tracker: OrderTracker, args) -> int:
    return 0 if tracker.toggle_pending_hold(args.order_id) else 1


def cmd_operators(tracker: OrderTracker, args) -> int:
    if args.action == 'add':
        return 0 if tracker.add_operator(args.operator_id, args.name) else 1
    if args.action == 'rename':
        return 0 if tracker.update_operator(args.operator_id, args.name) else 1
    if args.action == 'remove':
        return 0 if tracker.remove_operator(args.operator_id) else 1

    for operator in tracker.operators:
        print(f"{operator.id:<16} {operator.name}")
    return 0


def cmd_dashboard(tracker: OrderTracker, args) -> int:
    stats = tracker.dashboard(args.start, args.end)

    print(f"Pedidos completados: {stats.total_completed}")
    print(f"Tiempo medio de espera: {stats.avg_wait_time}")
    print(f"Tiempo medio de preparación: {stats.avg_prep_time}")
    for slice_ in stats.status_distribution:
        print(f"  {slice_.label:<14} {slice_.count:>5}  {slice_.proportion:.0%}")
    for point in stats.orders_by_day:
        print(f"  {point.label}  {point.value}")
    for perf in stats.operator_performance:
        print(f"  {perf.name:<24} {perf.total_orders:>5}  {perf.avg_prep_time}")
    return 0


def cmd_history(tracker: OrderTracker, args) -> int:
    newest_first = args.order == 'desc'

    if args.export:
        path = tracker.export_history(args.export, args.start, args.end, args.operator, newest_first)
        if path is None:
            return 1
        print(f"Exportado: {path}")
        return 0

    for order in tracker.history(args.start, args.end, args.operator, newest_first):
        print(
            f"{order.id:<20} {format_datetime(order.end_time):<18} "
            f"{calculate_duration(order.creation_time, order.start_time):<10} "
            f"{calculate_duration(order.start_time, order.end_time):<10} "
            f"{order.operator.name if order.operator else NOT_AVAILABLE}"
        )
    return 0


def cmd_clear_history(tracker: OrderTracker, args) -> int:
    if not args.yes and _ask("¿Eliminar todos los pedidos completados? (s/N): ").lower() != 's':
        return 1
    print(f"Eliminados: {tracker.clear_history()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='order-tracker', description='Seguimiento de pedidos')
    parser.add_argument('--config', default='config.ini', help='Path to config.ini')
    sub = parser.add_subparsers(dest='command', required=True)

    scan = sub.add_parser('scan', help='Scan a photo of an order document')
    scan.add_argument('image', type=Path)
    scan.set_defaults(func=cmd_scan)

    orders = sub.add_parser('orders', help='List orders')
    orders.add_argument('--filter', default=StatusFilter.ALL.value,
                        choices=[f.value for f in StatusFilter])
    orders.set_defaults(func=cmd_orders)

    finalize = sub.add_parser('finalize', help='Complete an order in progress')
    finalize.add_argument('order_id')
    finalize.set_defaults(func=cmd_finalize)

    hold = sub.add_parser('hold', help='Toggle the pending flag of a waiting order')
    hold.add_argument('order_id')
    hold.set_defaults(func=cmd_hold)

    operators = sub.add_parser('operators', help='Manage operators')
    operators.add_argument('action', nargs='?', default='list', choices=['list', 'add', 'rename', 'remove'])
    operators.add_argument('operator_id', nargs='?', default='')
    operators.add_argument('name', nargs='?', default='')
    operators.set_defaults(func=cmd_operators)

    for name, func, help_text in (
        ('dashboard', cmd_dashboard, 'Show statistics'),
        ('history', cmd_history, 'List or export completed orders'),
    ):
        view = sub.add_parser(name, help=help_text)
        view.add_argument('--start', type=date.fromisoformat)
        view.add_argument('--end', type=date.fromisoformat)
        if name == 'history':
            view.add_argument('--operator', default='all')
            view.add_argument('--order', default='desc', choices=['desc', 'asc'])
            view.add_argument('--export', type=Path, help='Directory for the CSV file')
        view.set_defaults(func=func)

    clear = sub.add_parser('clear-history', help='Delete all completed orders')
    clear.add_argument('--yes', action='store_true')
    clear.set_defaults(func=cmd_clear_history)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)

    configure_logging(args.config)
    config = AppConfig(args.config)
    args.app_config = config
    try:
        tracker = build_tracker(config)
    except OrderTrackerError as e:
        print(e.get_display_message())
        return 2

    if tracker.fatal_message:
        return 2

    try:
        return args.func(tracker, args)
    except OrderTrackerError as e:
        logger.error(f"Command {args.command} failed: {e}")
        print(e.get_display_message())
        return 1
    finally:
        tracker.stop()
        app.processEvents()


if __name__ == "__main__":
    sys.exit(main())
