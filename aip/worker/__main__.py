"""
Run the job worker in the foreground.

Usage:
    python -m aip.worker [--concurrency N] [--log-level DEBUG]
"""

import argparse
import logging
import signal
import sys

from aip.config import settings
from aip.core.dependencies import build_worker_deps, check_connections
from aip.core.logging_config import setup_logging
from aip.worker.pool import WorkerPool

logger = logging.getLogger("aip.worker")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="aip-worker", description="Consume provisioning jobs from Redis and run Terraform.")
    parser.add_argument("--concurrency", type=int, default=settings.worker_concurrency, help="number of parallel consumers")
    parser.add_argument("--log-level", default=settings.log_level, help="logging level (default: %(default)s)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    deps = build_worker_deps()
    checks = check_connections(deps)
    if not all(checks.values()):
        logger.error("Startup checks failed, exiting")
        return 1

    pool = WorkerPool(deps, concurrency=args.concurrency)

    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        pool.stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    pool.start()
    pool.wait()
    pool.stop(timeout=settings.dequeue_timeout_sec + 5)
    return 0


if __name__ == "__main__":
    sys.exit(main())
