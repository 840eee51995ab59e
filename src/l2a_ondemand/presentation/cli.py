"""CLI interface for L2A on-demand transformations."""
import sys
import json
import time
import argparse
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from l2a_ondemand.application.factories import TransformerFactory
from l2a_ondemand.domain.exceptions import DomainException
from l2a_ondemand.domain.models import JobStatus, JobView
from l2a_ondemand.infrastructure.config import ConfigLoader
from l2a_ondemand.shared.logging import setup_logger, get_logger
from l2a_ondemand.shared.metrics import MetricsCollector

EXIT_OK = 0
EXIT_NOT_OK = 1
EXIT_ERROR = 2


def load_metadata(path: Path) -> Dict[str, str]:
    """
    Read product metadata from a YAML or JSON mapping.

    Raises:
        DomainException: If the file is not a mapping
    """
    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise DomainException(f"{path} must contain a mapping of attribute names to values")

    metadata = {}
    for key, value in raw.items():
        if isinstance(value, datetime):
            # YAML reads unquoted timestamps as datetimes
            value = value.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        metadata[str(key)] = str(value)
    return metadata


def print_view(job_id: str, view: JobView) -> None:
    print(json.dumps({'job_id': job_id, **view.to_dict()}))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='l2a-ondemand',
        description="Order Sentinel-2 L2A products from L1C products"
    )
    parser.add_argument('--config', type=Path, help='Config YAML file')
    parser.add_argument('--log-level', default='INFO', help='Logging level (default: INFO)')
    parser.add_argument('--log-file', type=Path, help='Also write logs to this file')

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('describe', help='Show the capabilities of the processing service')

    check = commands.add_parser('check', help='Check that a product can be transformed')
    check.add_argument('metadata', type=Path, help='Product metadata (YAML/JSON mapping)')

    submit = commands.add_parser('submit', help='Order a transformation')
    submit.add_argument('job_id', help='Transformation id')
    submit.add_argument('metadata', type=Path, help='Product metadata (YAML/JSON mapping)')

    poll = commands.add_parser('poll', help='Poll a transformation once')
    poll.add_argument('job_id', help='Transformation id')
    poll.add_argument('state', help='State returned by submit (monitoring URL)')

    run = commands.add_parser('run', help='Order a transformation and wait for its result')
    run.add_argument('job_id', help='Transformation id')
    run.add_argument('metadata', type=Path, help='Product metadata (YAML/JSON mapping)')
    run.add_argument('--interval', type=float, default=30.0, help='Seconds between polls (default: 30)')
    run.add_argument('--max-polls', type=int, help='Give up after this many polls')

    return parser


def run_until_done(transformer, job_id: str, metadata: Dict[str, str],
                   interval: float, max_polls: Optional[int]) -> int:
    """
    Submit a transformation and poll it until it completes or fails.

    UNKNOWN is polled through like RUNNING, a paused remote process may resume.
    """
    logger = get_logger(__name__)

    reason = transformer.check_eligible(metadata)
    if reason:
        logger.error(f"Product rejected: {reason}")
        return EXIT_NOT_OK

    view = transformer.submit(job_id, metadata)
    print_view(job_id, view)

    polls = 0
    while view.status in (JobStatus.RUNNING, JobStatus.UNKNOWN):
        if max_polls is not None and polls >= max_polls:
            logger.error(
                f"Transformation '{job_id}' still {view.status.value} after {polls} polls"
            )
            return EXIT_NOT_OK
        time.sleep(interval)
        view = transformer.poll(job_id, view.state)
        polls += 1
        print_view(job_id, view)

    return EXIT_OK if view.status is JobStatus.COMPLETED else EXIT_NOT_OK


def log_metrics(metrics: MetricsCollector) -> None:
    """Log request and download counters collected during a run."""
    logger = get_logger(__name__)
    summary = metrics.get_summary()

    logger.info(f"Finished in {summary['total_elapsed']:.1f}s")
    for name, value in sorted(summary['counters'].items()):
        logger.info(f"  {name}: {value}")
    for name, stats in sorted(summary['metrics'].items()):
        logger.info(
            f"  {name}: avg {stats['avg']:.2f}s, max {stats['max']:.2f}s ({stats['count']} samples)"
        )


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logger(level=args.log_level, log_file=args.log_file)
    logger = get_logger(__name__)

    try:
        config = ConfigLoader(config_path=args.config).load()
        factory = TransformerFactory(config)

        if args.command == 'describe':
            descriptor = factory.create_client().load_capabilities()
            print(f"{descriptor.label} (version {descriptor.version})")
            print(descriptor.description)
            for process in descriptor.processes:
                print(f"  - {process}")
            return EXIT_OK

        if args.command == 'check':
            transformer = factory.create_transformer(load_capabilities=False)
            reason = transformer.check_eligible(load_metadata(args.metadata))
            print(reason or "eligible")
            return EXIT_NOT_OK if reason else EXIT_OK

        transformer = factory.create_transformer()

        if args.command == 'submit':
            print_view(args.job_id, transformer.submit(args.job_id, load_metadata(args.metadata)))
            return EXIT_OK

        if args.command == 'poll':
            # a download started here finishes before the process exits
            print_view(args.job_id, transformer.poll(args.job_id, args.state))
            return EXIT_OK

        try:
            return run_until_done(
                transformer, args.job_id, load_metadata(args.metadata), args.interval, args.max_polls
            )
        finally:
            log_metrics(factory.metrics)

    except DomainException as e:
        logger.error(f"Error: {e}")
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"Error: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == '__main__':
    sys.exit(main())
