#!/usr/bin/env python3
"""
Command-line script to preview a planning task shift.

Usage:
    python -m shopfloor.scripts.preview_shift --task-ids 12 13 14 [--target 2026-02-11T09:00:00] [--no-snap] [--fixed-only] [--show-all] [--summary-only]

Options:
    --task-ids ID [ID ...]   Planning task ids to move
    --target TIMESTAMP       Target start (plant-local ISO timestamp, defaults to now)
    --no-snap                Use the target as given instead of rounding it up to the quarter hour
    --fixed-only             Only locked, started or past tasks block the move
    --show-all               Show all tasks, not just those with changes
    --summary-only           Show only summary, not detailed diffs
"""

import sys
import argparse

from shopfloor import create_app
from shopfloor.production.scheduling.preview import run_preview_script


def main():
    parser = argparse.ArgumentParser(
        description='Preview a planning task shift without updating the database'
    )
    parser.add_argument(
        '--task-ids',
        type=int,
        nargs='+',
        required=True,
        help='Planning task ids to move'
    )
    parser.add_argument(
        '--target',
        type=str,
        help='Target start (ISO timestamp, defaults to now)'
    )
    parser.add_argument(
        '--no-snap',
        action='store_true',
        help='Do not round the target up to the quarter hour'
    )
    parser.add_argument(
        '--fixed-only',
        action='store_true',
        help='Only locked, started or past tasks count as obstacles'
    )
    parser.add_argument(
        '--show-all',
        action='store_true',
        help='Show all tasks, not just those with changes'
    )
    parser.add_argument(
        '--summary-only',
        action='store_true',
        help='Show only summary statistics, not detailed diffs'
    )

    args = parser.parse_args()

    app = create_app()

    with app.app_context():
        try:
            run_preview_script(
                task_ids=args.task_ids,
                target_str=args.target,
                fixed_only=args.fixed_only,
                show_all=args.show_all,
                detailed=not args.summary_only,
                snap=not args.no_snap
            )
        except Exception as e:
            print(f"\nFatal error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
