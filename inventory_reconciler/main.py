import argparse
import sys
import logging

from dotenv import load_dotenv
from tabulate import tabulate

from inventory_reconciler.config import config
from inventory_reconciler.db import create_store
from inventory_reconciler.exceptions import ConfigError
from inventory_reconciler.logging_setup import logger, get_logger
from inventory_reconciler.batch import (
    run_inventory_job, run_order_tracking_job, run_shipment_backfill_job
)

JOBS = {
    'inventory': ('INVENTORY', run_inventory_job),
    'backfill': ('BACKFILL', run_shipment_backfill_job),
    'fix-orders': ('FIX_ORDERS', run_order_tracking_job),
}


def setup_logging(verbose=False):
    """Attach console and file handlers to the root logger for service modules."""
    logger.configure_root_logger(logging.DEBUG if verbose else None)


def summarize(name, results):
    """Flatten a job result into (job, step, metric, value) rows."""
    rows = []

    def add(step, values):
        for key, value in values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            rows.append([name, step, key, value])

    add('-', results)
    for step, values in results.items():
        if isinstance(values, dict) and step != 'processes':
            add(step, values)
    for step, values in results.get('processes', {}).items():
        add(step, values)

    rows.append([name, '-', 'success', results.get('success', False)])
    return rows


def run_once(store, job_names):
    """Run the named jobs once and print a summary table.

    Returns:
        Exit code
    """
    log = get_logger('reconciler')
    table = []
    ok = True

    for name in job_names:
        _, job = JOBS[name]
        try:
            results = job(store, config)
        except Exception as e:
            log.exception(f"Error running {name}: {str(e)}")
            table.append([name, '-', 'error', str(e)])
            ok = False
            continue
        table.extend(summarize(name, results))
        ok = ok and results.get('success', False)

    print(tabulate(table, headers=['Job', 'Step', 'Metric', 'Value']))
    return 0 if ok else 1


def cron_expression(interval_minutes):
    """Cron schedule that fires every `interval_minutes`.

    Raises:
        ConfigError: If the interval is not a whole step of minutes, hours or days
    """
    if interval_minutes < 60:
        return f"*/{interval_minutes} * * * *"
    if interval_minutes % 60 == 0 and interval_minutes < 24 * 60:
        return f"0 */{interval_minutes // 60} * * *"
    if interval_minutes % (24 * 60) == 0:
        return f"0 0 */{interval_minutes // (24 * 60)} * *"
    raise ConfigError(
        f"Interval of {interval_minutes} minutes cannot be expressed as a cron step",
        code='INVALID_INTERVAL'
    )


def crontab_lines(command='inventory-reconciler'):
    """One crontab entry per job, each at its configured interval."""
    return [
        f"{cron_expression(config.job_settings(section).interval_minutes)} {command} run {name}"
        for name, (section, _) in JOBS.items()
    ]


def build_parser():
    parser = argparse.ArgumentParser(description='Inventory and shipment reconciliation jobs')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    run_parser = subparsers.add_parser('run', help='Run jobs once')
    run_parser.add_argument('job', choices=list(JOBS) + ['all'], help='Job to run')

    crontab_parser = subparsers.add_parser('crontab', help='Print crontab entries for every job')
    crontab_parser.add_argument(
        '--executable', default='inventory-reconciler', help='Command cron should invoke'
    )

    return parser


def main(argv=None):
    """Main entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    if args.command == 'crontab':
        try:
            print('\n'.join(crontab_lines(args.executable)))
        except ConfigError as e:
            get_logger('reconciler').error(f"Invalid job interval: {str(e)}")
            return 1
        return 0

    try:
        store = create_store(config)
    except ConfigError as e:
        get_logger('reconciler').error(f"Startup configuration error: {str(e)}")
        return 1

    job_names = list(JOBS) if args.job == 'all' else [args.job]
    return run_once(store, job_names)


if __name__ == "__main__":
    sys.exit(main())
