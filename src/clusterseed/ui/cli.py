from __future__ import annotations

import argparse
import logging
import sys
import threading
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from clusterseed.app import provision
from clusterseed.config import ConfigurationError, configure_logging, get_provision_config
from clusterseed.domain.errors import RunCancelledError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from clusterseed.domain.reconciliation import ApplyReport

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected an integer, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clusterseed",
        description="Provision Elasticsearch templates, indices and seed data from a model root",
    )
    parser.add_argument(
        "model_root",
        nargs="?",
        default=None,
        help="Directory holding the model (defaults to CLUSTERSEED_MODEL_ROOT or ./elasticsearch)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=None,
        help="Delete and recreate indices that already exist, then reload their data",
    )
    parser.add_argument(
        "--no-merge-mapping",
        dest="merge_mapping",
        action="store_false",
        default=None,
        help="Leave existing indices untouched instead of merging mappings and settings",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        help="Maximum number of indices or data sets processed concurrently",
    )
    parser.add_argument(
        "--bulk-batch-size",
        type=_positive_int,
        help="Split each data set into bulk requests of at most this many actions",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output, including every HTTP request",
    )
    return parser


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv))


def _log_report(report: ApplyReport) -> None:
    for outcome in report.outcomes:
        detail = f" ({outcome.detail})" if outcome.detail else ""
        log.debug("%s %s: %s%s", outcome.kind, outcome.name, outcome.action, detail)
    for error in report.errors:
        log.error("%s", error)


def main(argv: Sequence[str] | None = None, *, cancel: threading.Event | None = None) -> int:
    """Main application entry point; returns the process exit code."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 2

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        defaults = get_provision_config()
    except (ConfigurationError, ValueError):
        log.exception("Configuration error")
        return 2

    try:
        report = provision(
            parsed_args.model_root if parsed_args.model_root is not None else defaults.model_root,
            force=defaults.force if parsed_args.force is None else parsed_args.force,
            merge_mapping=(
                defaults.merge_mapping
                if parsed_args.merge_mapping is None
                else parsed_args.merge_mapping
            ),
            workers=parsed_args.workers or defaults.workers,
            bulk_batch_size=parsed_args.bulk_batch_size or defaults.bulk_batch_size,
            cancel=cancel,
        )
    except ConfigurationError:
        log.exception("Configuration error")
        return 2
    except RunCancelledError as exc:
        _log_report(exc.report)
        log.warning("Provisioning cancelled")
        return 1
    except Exception:
        log.exception("Fatal error during provisioning")
        return 1

    _log_report(report)
    if not report.ok:
        log.error("Provisioning finished with %s error(s)", len(report.errors))
        return 1
    return 0


def _install_sigint_handler(cancel: threading.Event) -> None:
    def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
        """Handle SIGINT (Ctrl+C) by asking the run to stop at the next boundary."""
        if cancel.is_set():
            raise KeyboardInterrupt
        log.warning("Cancellation requested (Ctrl+C); press again to abort immediately")
        cancel.set()

    signal(SIGINT, sigint_handler)


def run() -> None:
    load_dotenv()
    cancel = threading.Event()
    _install_sigint_handler(cancel)
    sys.exit(main(cancel=cancel))


if __name__ == "__main__":
    run()
