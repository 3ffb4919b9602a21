from __future__ import annotations

import argparse
import logging
import sys

from taskcycle.domain.errors import SchedulingError
from taskcycle.infra.db import init_db
from taskcycle.infra.logging import setup_logging
from taskcycle.services.scheduler import SchedulerFacade

logger = logging.getLogger("taskcycle")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskcycle", description="Recurring task scheduler")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create the scheduling tables")

    preview = commands.add_parser("preview", help="show when a task's next occurrence would start")
    preview.add_argument("task_id", type=int)

    process = commands.add_parser("process", help="create due occurrences for every task of an owner")
    process.add_argument("owner_id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging()
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.error("DB error: %s", exc)
        return 1

    scheduler = SchedulerFacade()
    try:
        if args.command == "preview":
            next_date = scheduler.preview_next_occurrence_date(args.task_id)
            print(next_date.isoformat() if next_date else "none")
        elif args.command == "process":
            for occurrence in scheduler.process_recurring_tasks(args.owner_id):
                print(f"{occurrence.task_id}\t{occurrence.id}\t{occurrence.start_date.isoformat()}")
    except SchedulingError as exc:
        logger.error("%s", exc)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
