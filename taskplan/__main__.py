"""
Task Reschedule Engine
======================

Command-line entry point: runs the bundled example project.
"""

import argparse
import sys

from .config import SchedulerConfig
from .examples.simple_project import create_sample_project
from .services.bulk import STRATEGIES
from .utils.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Task dependency rescheduling and workload analysis")
    parser.add_argument(
        "--example", action="store_true", help="Run the example project"
    )
    parser.add_argument(
        "--reschedule",
        choices=sorted(STRATEGIES),
        help="Also run a whole-project reschedule of this type",
    )
    parser.add_argument(
        "--delay", type=int, default=0, help="Delay days for --reschedule"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Filename prefix for the network and workload charts",
    )
    parser.add_argument(
        "--env-file", type=str, default=None, help="Optional .env file with TASKPLAN_* settings"
    )

    args = parser.parse_args()

    config = SchedulerConfig.from_env(args.env_file)
    setup_logging(config.to_dict())

    if args.example:
        print("Running example project...")
        create_sample_project(
            output=args.output, show=False, reschedule_type=args.reschedule, delay_days=args.delay
        )
        if args.output:
            print(f"Charts saved with prefix {args.output}")
        return 0
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
