# filecadence/core/cli.py
"""
CLI for the filecadence schedule checker.

Commands:
1. `filecadence run`: poll on a fixed cadence until SIGINT/SIGTERM
2. `filecadence poll`: run a single pass and print the report as JSON
3. `filecadence next-run`: preview upcoming run times for a schedule config

Storage is PostgreSQL when `--database-url` (or FILECADENCE_DATABASE_URL)
is given; otherwise an in-memory store is used, optionally seeded from a
JSON file of records with `--records`.
"""

import argparse
import asyncio
import os
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from filecadence.core.codec.serde import (
    dumps_json,
    format_timestamp,
    loads_json,
    parse_timestamp,
)
from filecadence.core.errors import ConfigurationError, ErrorCode, FilecadenceError
from filecadence.core.events.emitter import RecordingEmitter, TriggerEmitter
from filecadence.core.events.postgres import PostgresEmitter
from filecadence.core.logging import get_logger, setup_logging
from filecadence.core.models.app import EngineConfig
from filecadence.core.models.database import PostgresConfig
from filecadence.core.models.schedule import ScheduleSettings
from filecadence.core.scheduler.calculator import compute_next_run
from filecadence.core.scheduler.service import ScheduleChecker
from filecadence.core.storage.base import DEFAULT_NAMESPACE, Record, ScheduleStore
from filecadence.core.storage.memory import InMemoryScheduleStore
from filecadence.core.storage.postgres import PostgresScheduleStore
from filecadence.core.types.result import is_err
from filecadence.core.types.status import ScheduleType

DATABASE_URL_ENV = 'FILECADENCE_DATABASE_URL'

_LOGLEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _fail(error: FilecadenceError) -> None:
    print(error.format_rust_style(), file=sys.stderr)
    sys.exit(1)


def build_engine_config(args: argparse.Namespace) -> EngineConfig:
    """Assemble EngineConfig from parsed arguments and the environment."""
    database_url: Optional[str] = args.database_url or os.environ.get(DATABASE_URL_ENV)
    storage = PostgresConfig(database_url=database_url) if database_url else None

    overrides: dict[str, Any] = {'namespace': args.namespace, 'storage': storage}
    if getattr(args, 'interval', None) is not None:
        overrides['poll_interval_seconds'] = args.interval
    if args.retention_days is not None:
        overrides['retention_days'] = args.retention_days
    if args.record_timeout is not None:
        overrides['record_timeout_seconds'] = args.record_timeout or None
    if args.concurrency is not None:
        overrides['max_concurrency'] = args.concurrency
    return EngineConfig(**overrides)


def load_records_file(path: str) -> list[Record]:
    """
    Read seed records for the in-memory store.

    The file holds either a JSON array of records or an object mapping
    scheduleId to record.
    """
    try:
        text = Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(
            message=f"cannot read records file '{path}'",
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[str(e)],
        ) from e

    parsed = loads_json(text)
    if is_err(parsed):
        raise ConfigurationError(
            message=f"records file '{path}' is not valid JSON",
            code=ErrorCode.CLI_INVALID_ARGS,
            notes=[str(parsed.err_value)],
        )

    data = parsed.ok_value
    if isinstance(data, dict):
        data = list(data.values())
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ConfigurationError(
            message=f"records file '{path}' must hold an array of objects",
            code=ErrorCode.CLI_INVALID_ARGS,
            help_text='e.g. [{"scheduleId": "schedule-c1-1", ...}]',
        )
    return data


def _seeded_memory_store(
    namespace: str, records: list[Record]
) -> InMemoryScheduleStore:
    seed: dict[str, Record] = {}
    for index, record in enumerate(records):
        key = record.get('scheduleId')
        seed[key if isinstance(key, str) and key else f'record-{index}'] = record
    return InMemoryScheduleStore({namespace: seed})


async def _with_backend(
    config: EngineConfig,
    records_path: Optional[str],
    body: Callable[[ScheduleStore, TriggerEmitter], Awaitable[None]],
) -> None:
    """Open the configured store/emitter pair, run ``body``, then close."""
    logger = get_logger('cli')

    if config.storage is None:
        records = load_records_file(records_path) if records_path else []
        store = _seeded_memory_store(config.namespace, records)
        emitter = RecordingEmitter()
        logger.info(f'Using in-memory store with {len(records)} seeded records')
        await body(store, emitter)
        if emitter.events:
            logger.info(f'Dry run recorded {len(emitter.events)} trigger events')
        return

    if records_path:
        logger.warning('--records is ignored when a database URL is configured')

    pg_store = PostgresScheduleStore(config.storage)
    try:
        await pg_store.ensure_schema_initialized()
        await body(pg_store, PostgresEmitter(pg_store.session_factory))
    finally:
        await pg_store.close()


def run_command(args: argparse.Namespace) -> None:
    """Handle run command."""
    logger = get_logger('cli')

    loglevel: str = args.loglevel
    setup_logging(loglevel)
    logger.info(f'Starting schedule checker with loglevel={loglevel}')

    try:
        config = build_engine_config(args)
    except FilecadenceError as e:
        _fail(e)
        return

    async def run_checker(store: ScheduleStore, emitter: TriggerEmitter) -> None:
        checker = ScheduleChecker(store, emitter, config)

        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            logger.info('Received interrupt signal, stopping schedule checker...')
            checker.request_stop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                pass

        await checker.run_forever()

    try:
        asyncio.run(_with_backend(config, args.records, run_checker))
    except KeyboardInterrupt:
        logger.info('Schedule checker interrupted by user')
        return
    except FilecadenceError as e:
        _fail(e)
    except Exception as e:
        logger.error(f'Schedule checker failed: {e}', exc_info=True)
        sys.exit(1)


def poll_command(args: argparse.Namespace) -> None:
    """Handle poll command: one pass, report printed to stdout."""
    logger = get_logger('cli')

    setup_logging(args.loglevel)

    try:
        config = build_engine_config(args)
        now = parse_timestamp(args.now) if args.now else datetime.now(timezone.utc)
    except FilecadenceError as e:
        _fail(e)
        return
    except ValueError as e:
        _fail(
            ConfigurationError(
                message=f"invalid --now '{args.now}'",
                code=ErrorCode.CLI_INVALID_ARGS,
                notes=[str(e)],
            )
        )
        return

    summary: dict[str, Any] = {}

    async def poll_once(store: ScheduleStore, emitter: TriggerEmitter) -> None:
        report = await ScheduleChecker(store, emitter, config).poll(now)
        summary.update(report.summary())
        summary['quarantinedIds'] = [q.schedule_id for q in report.quarantined]

    try:
        asyncio.run(_with_backend(config, args.records, poll_once))
    except FilecadenceError as e:
        _fail(e)
        return
    except Exception as e:
        logger.error(f'Poll failed: {e}', exc_info=True)
        sys.exit(1)

    rendered = dumps_json(summary, indent=2)
    if is_err(rendered):
        logger.error(f'Could not render report: {rendered.err_value}')
        sys.exit(1)
    print(rendered.ok_value)
    sys.exit(1 if summary['quarantined'] else 0)


def next_run_command(args: argparse.Namespace) -> None:
    """Handle next-run command: print the next ``--count`` run instants."""
    setup_logging(args.loglevel)

    settings = ScheduleSettings(
        day_of_week=args.day_of_week,
        time=args.time,
        cron_expression=args.cron,
    )
    try:
        current = parse_timestamp(args.now) if args.now else datetime.now(timezone.utc)
    except ValueError as e:
        _fail(
            ConfigurationError(
                message=f"invalid --now '{args.now}'",
                code=ErrorCode.CLI_INVALID_ARGS,
                notes=[str(e)],
            )
        )
        return

    try:
        for _ in range(args.count):
            current = compute_next_run(
                args.schedule_type, settings, args.timezone, current
            )
            print(format_timestamp(current))
    except FilecadenceError as e:
        _fail(e)


def _add_common_arguments(
    parser: argparse.ArgumentParser, default_loglevel: str = 'INFO'
) -> None:
    parser.add_argument(
        '--loglevel',
        choices=_LOGLEVELS,
        default=default_loglevel,
        type=str.upper,
        help=f'Logging level (default: {default_loglevel})',
    )


def _add_engine_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--database-url',
        dest='database_url',
        default=None,
        help=f'PostgreSQL URL (postgresql+psycopg://...); defaults to ${DATABASE_URL_ENV}',
    )
    parser.add_argument(
        '--namespace',
        default=DEFAULT_NAMESPACE,
        help=f'Store namespace for schedule records (default: {DEFAULT_NAMESPACE})',
    )
    parser.add_argument(
        '--retention-days',
        dest='retention_days',
        type=int,
        default=None,
        help='Age in days after which failed schedules are pruned (default: 30)',
    )
    parser.add_argument(
        '--record-timeout',
        dest='record_timeout',
        type=float,
        default=None,
        help='Seconds allowed per schedule, 0 disables (default: 30)',
    )
    parser.add_argument(
        '--concurrency',
        type=int,
        default=None,
        help='Schedules processed in parallel (default: 1)',
    )
    parser.add_argument(
        '--records',
        default=None,
        help='JSON file seeding the in-memory store (no database URL only)',
    )


def main() -> None:
    """Main CLI entry point."""
    try:
        parser = argparse.ArgumentParser(
            prog='filecadence',
            description='filecadence - poll and dispatch recurring file schedules',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Hourly checker against PostgreSQL
  FILECADENCE_DATABASE_URL=postgresql+psycopg://app@localhost/app filecadence run

  # One dry-run pass over a JSON file of records
  filecadence poll --records schedules.json --now 2025-06-02T09:00:00Z

  # Next three runs of a first-Friday schedule in Berlin
  filecadence next-run monthly-first-weekday --day-of-week friday \\
      --time 08:30 --timezone Europe/Berlin --count 3
""",
        )
        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Run command
        run_parser = subparsers.add_parser(
            'run',
            help='Poll schedules on a fixed cadence until stopped',
        )
        _add_common_arguments(run_parser)
        _add_engine_arguments(run_parser)
        run_parser.add_argument(
            '--interval',
            type=float,
            default=None,
            help='Seconds between polls (default: 3600)',
        )

        # Poll command
        poll_parser = subparsers.add_parser(
            'poll',
            help='Run a single poll pass and print its report',
        )
        _add_common_arguments(poll_parser, default_loglevel='WARNING')
        _add_engine_arguments(poll_parser)
        poll_parser.add_argument(
            '--now',
            default=None,
            help='Poll instant as ISO-8601 (default: current time)',
        )

        # Next-run command
        next_run_parser = subparsers.add_parser(
            'next-run',
            help='Preview upcoming run times for a schedule config',
        )
        _add_common_arguments(next_run_parser, default_loglevel='WARNING')
        next_run_parser.add_argument(
            'schedule_type',
            choices=[t.value for t in ScheduleType],
            help='Schedule type',
        )
        next_run_parser.add_argument('--time', default=None, help='HH:MM (default: 09:00)')
        next_run_parser.add_argument(
            '--day-of-week',
            dest='day_of_week',
            default=None,
            help='Weekday name (default: monday)',
        )
        next_run_parser.add_argument(
            '--cron', default=None, help='5-field cron expression (custom only)'
        )
        next_run_parser.add_argument(
            '--timezone', default='UTC', help='IANA timezone (default: UTC)'
        )
        next_run_parser.add_argument(
            '--now',
            default=None,
            help='Reference instant as ISO-8601 (default: current time)',
        )
        next_run_parser.add_argument(
            '--count',
            type=int,
            default=1,
            help='Number of upcoming runs to print (default: 1)',
        )

        args = parser.parse_args()

        match args.command:
            case 'run':
                run_command(args)
            case 'poll':
                poll_command(args)
            case 'next-run':
                next_run_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        sys.exit(0)


if __name__ == '__main__':
    main()
