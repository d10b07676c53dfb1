"""
Preview of a task shift: proposed vs stored planned dates, without writing.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from shopfloor.datetime_utils import format_planning_timestamp
from shopfloor.logging_config import get_logger
from shopfloor.models import PlanningTask
from shopfloor.production.scheduling.service import compute_shift, compute_shift_by_days, resolve_shift_target
from shopfloor.production.scheduling.shifter import Task

logger = get_logger(__name__)


def _minutes_moved(old: Optional[datetime], new: Optional[datetime]) -> int:
    if old is None or new is None:
        return 0
    return int((new - old).total_seconds() / 60)


def build_preview(
    records: List[PlanningTask],
    shifted: List[Task],
    show_all: bool = False,
) -> Dict[str, Any]:
    """
    Compare stored records with their proposed placement.

    Args:
        records: Stored PlanningTask rows
        shifted: Proposed Task values (same ids)
        show_all: If True, list every task. If False, only tasks that move.

    Returns:
        dict: total_tasks, tasks_with_changes, tasks, summary
    """
    shifted_by_id = {task.id: task for task in shifted}

    rows = []
    tasks_with_changes = 0
    start_changes = 0
    end_changes = 0

    for record in records:
        proposed = shifted_by_id[record.id]

        start_changed = record.planned_date != proposed.planned_start
        end_changed = record.planned_end != proposed.planned_end
        has_changes = start_changed or end_changed

        if has_changes:
            tasks_with_changes += 1
            if start_changed:
                start_changes += 1
            if end_changed:
                end_changes += 1

        if show_all or has_changes:
            rows.append({
                'id': record.id,
                'order_id': record.order_id,
                'machine': record.machine,
                'current_planned_date': format_planning_timestamp(record.planned_date),
                'computed_planned_date': format_planning_timestamp(proposed.planned_start),
                'planned_date_changed': start_changed,
                'current_planned_end': format_planning_timestamp(record.planned_end),
                'computed_planned_end': format_planning_timestamp(proposed.planned_end),
                'planned_end_changed': end_changed,
                'minutes_moved': _minutes_moved(record.planned_date, proposed.planned_start),
            })

    return {
        'total_tasks': len(records),
        'tasks_with_changes': tasks_with_changes,
        'tasks': rows,
        'summary': {
            'total_tasks': len(records),
            'tasks_with_changes': tasks_with_changes,
            'tasks_without_changes': len(records) - tasks_with_changes,
            'planned_date_changes': start_changes,
            'planned_end_changes': end_changes,
        },
    }


def preview_shift(
    task_ids: List[int],
    target: datetime,
    fixed_only: bool = False,
    show_all: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Preview moving the batch to `target`. Nothing is written."""
    logger.info("Previewing task shift", task_count=len(task_ids), target=str(target))

    records, shifted = compute_shift(task_ids, target, fixed_only=fixed_only, now=now)
    preview = build_preview(records, shifted, show_all=show_all)
    preview['summary']['target'] = format_planning_timestamp(target)
    return preview


def preview_shift_by_days(
    task_ids: List[int],
    offset_days: int,
    show_all: bool = False,
) -> Dict[str, Any]:
    """Preview moving the batch by working days. Nothing is written."""
    logger.info("Previewing task shift by days", task_count=len(task_ids), offset_days=offset_days)

    records, shifted = compute_shift_by_days(task_ids, offset_days)
    preview = build_preview(records, shifted, show_all=show_all)
    preview['summary']['offset_days'] = offset_days
    return preview


def print_preview(preview_results: Dict[str, Any], detailed: bool = True):
    """
    Print a formatted preview of a task shift.

    Args:
        preview_results: Results from preview_shift()
        detailed: If True, show each task. If False, only the summary.
    """
    summary = preview_results.get('summary', {})
    tasks = preview_results.get('tasks', [])

    print("\n" + "=" * 80)
    print("TASK SHIFT PREVIEW - Changes Summary")
    print("=" * 80)

    if summary:
        print(f"\nTotal Tasks: {summary.get('total_tasks', 0)}")
        print(f"Tasks with Changes: {summary.get('tasks_with_changes', 0)}")
        print(f"Tasks without Changes: {summary.get('tasks_without_changes', 0)}")
        print(f"Target: {summary.get('target', 'N/A')}")

    if not detailed or not tasks:
        print("\n" + "=" * 80)
        return

    print("\n" + "=" * 80)
    print("DETAILED CHANGES")
    print("=" * 80)

    for row in tasks:
        print(f"\nTask {row['id']} - {row.get('machine') or 'No machine'} (order {row.get('order_id') or 'N/A'})")
        if row['planned_date_changed'] or row['planned_end_changed']:
            print(f"  ⚠️  Start: {row['current_planned_date']} → {row['computed_planned_date']} ({row['minutes_moved']:+d} min)")
            print(f"  ⚠️  End:   {row['current_planned_end']} → {row['computed_planned_end']}")
        else:
            print(f"  ✓  {row['current_planned_date']} → {row['current_planned_end']} (no change)")

    print("\n" + "=" * 80)


def run_preview_script(
    task_ids: List[int],
    target_str: Optional[str] = None,
    fixed_only: bool = False,
    show_all: bool = False,
    detailed: bool = True,
    snap: bool = True,
):
    """
    Run the preview from the command line (needs an app context).

    Args:
        task_ids: Planning task ids to move
        target_str: Optional ISO timestamp; defaults to plant-local now
        fixed_only: Only locked/started/past tasks count as obstacles
        show_all: Show all tasks, not just those with changes
        detailed: Show detailed diff for each task
        snap: Round the target up to SHIFT_SNAP_MINUTES, like the HTTP API does
    """
    target = resolve_shift_target(target_str, snap=snap)

    try:
        preview_results = preview_shift(task_ids, target, fixed_only=fixed_only, show_all=show_all)
        print_preview(preview_results, detailed=detailed)
        return preview_results

    except Exception as e:
        logger.error("Error in preview script", error=str(e), exc_info=True)
        print(f"\nError: {e}")
        raise
