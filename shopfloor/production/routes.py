from datetime import datetime, timedelta

from flask import current_app, jsonify, request

from shopfloor.datetime_utils import (
    format_planning_timestamp,
    parse_planning_date,
    parse_planning_timestamp,
)
from shopfloor.logging_config import get_logger
from shopfloor.models import PlanningTask, db
from shopfloor.production import production_bp
from shopfloor.production.scheduling.metrics import machine_utilization
from shopfloor.production.scheduling.planner import (
    EvaluationStep,
    Order,
    SchedulingStrategy,
    StrategyConfig,
)
from shopfloor.production.scheduling.preview import preview_shift, preview_shift_by_days
from shopfloor.production.scheduling.service import (
    PlanningTaskNotFound,
    generate_auto_plan,
    get_work_calendar,
    resolve_shift_target,
    shift_planning_tasks,
    shift_planning_tasks_by_days,
    task_from_record,
)

logger = get_logger(__name__)


def _parse_task_ids(data):
    """Validate task_ids from a request body. Raises ValueError."""
    task_ids = data.get('task_ids')
    if not isinstance(task_ids, list) or not task_ids:
        raise ValueError("task_ids must be a non-empty list")
    # bool is an int subclass; floats and numeric strings are rejected outright
    if any(isinstance(task_id, bool) or not isinstance(task_id, int) for task_id in task_ids):
        raise ValueError("task_ids must contain integer ids")
    return task_ids


def _parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _resolve_target(data, calendar):
    """Target from the body, or plant-local now (snapped to the quarter hour unless snap=false)."""
    return resolve_shift_target(
        data.get('target'),
        snap=_parse_bool(data.get('snap'), default=True),
        calendar=calendar,
    )


ORDER_TEXT_FIELDS = (
    'status', 'treatment', 'material', 'drive_file_id', 'project_id', 'project_drive_folder_id',
)
ORDER_DATE_FIELDS = ('delivery_date', 'created_at', 'project_delivery_date')


def _parse_optional_timestamp(value, tz_name):
    if value in (None, ''):
        return None
    return parse_planning_timestamp(value, tz_name)


def _parse_order(raw, tz_name):
    """Build an Order from a request body entry. Raises ValueError."""
    if not isinstance(raw, dict) or raw.get('id') in (None, ''):
        raise ValueError("each order needs an id")

    evaluation = raw.get('evaluation') or []
    if not isinstance(evaluation, list):
        raise ValueError(f"order {raw['id']}: evaluation must be a list")

    steps = []
    for step in evaluation:
        if not isinstance(step, dict) or not step.get('machine'):
            raise ValueError(f"order {raw['id']}: each evaluation step needs a machine")
        hours = step.get('hours', 0)
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours < 0:
            raise ValueError(f"order {raw['id']}: hours must be a non-negative number")
        steps.append(EvaluationStep(machine=str(step['machine']), hours=float(hours)))

    fields = {name: raw.get(name) for name in ORDER_TEXT_FIELDS}
    for name in ORDER_DATE_FIELDS:
        fields[name] = _parse_optional_timestamp(raw.get(name), tz_name)

    return Order(id=str(raw['id']), evaluation=steps, **fields)


def _parse_strategy_config(data):
    """Raises ValueError for an unknown strategy."""
    strategy = data.get('strategy') or SchedulingStrategy.DELIVERY_DATE.value
    try:
        main_strategy = SchedulingStrategy(str(strategy).upper())
    except ValueError:
        raise ValueError(f"Unknown strategy: {strategy}")

    return StrategyConfig(
        main_strategy=main_strategy,
        only_with_cad=_parse_bool(data.get('only_with_cad')),
        only_with_blueprint=_parse_bool(data.get('only_with_blueprint')),
        only_with_material=_parse_bool(data.get('only_with_material')),
        require_treatment=_parse_bool(data.get('require_treatment')),
    )


def _not_found(exc):
    return jsonify({
        "error": "Planning tasks not found",
        "missing_ids": exc.missing_ids,
    }), 404


@production_bp.route("/planning/shift", methods=["POST"])
def shift_tasks():
    """Move a batch of planning tasks to start at the next working time at/after the target."""
    try:
        data = request.get_json(silent=True) or {}
        calendar = get_work_calendar()
        try:
            task_ids = _parse_task_ids(data)
            target = _resolve_target(data, calendar)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        fixed_only = _parse_bool(data.get('fixed_only'))

        if _parse_bool(data.get('dry_run')):
            preview = preview_shift(task_ids, target, fixed_only=fixed_only, show_all=True)
            return jsonify({"dry_run": True, **preview}), 200

        result = shift_planning_tasks(task_ids, target, fixed_only=fixed_only)
        return jsonify({
            "success": True,
            "target": format_planning_timestamp(target),
            **result,
        }), 200

    except PlanningTaskNotFound as exc:
        return _not_found(exc)
    except Exception as exc:
        logger.error("Error shifting planning tasks", error=str(exc), exc_info=True)
        db.session.rollback()
        return jsonify({
            "error": "Failed to shift planning tasks",
            "details": str(exc)
        }), 500


@production_bp.route("/planning/shift-days", methods=["POST"])
def shift_tasks_by_days():
    """Move a batch of planning tasks forward/backward by working days."""
    try:
        data = request.get_json(silent=True) or {}
        try:
            task_ids = _parse_task_ids(data)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        offset_days = data.get('offset_days')
        if isinstance(offset_days, bool) or not isinstance(offset_days, int):
            return jsonify({"error": "offset_days must be an integer"}), 400

        max_days = current_app.config.get('MAX_SHIFT_DAYS', 3660)
        if abs(offset_days) > max_days:
            return jsonify({"error": f"offset_days must be between -{max_days} and {max_days}"}), 400

        if _parse_bool(data.get('dry_run')):
            preview = preview_shift_by_days(task_ids, offset_days, show_all=True)
            return jsonify({"dry_run": True, **preview}), 200

        result = shift_planning_tasks_by_days(task_ids, offset_days)
        return jsonify({
            "success": True,
            "offset_days": offset_days,
            **result,
        }), 200

    except PlanningTaskNotFound as exc:
        return _not_found(exc)
    except Exception as exc:
        logger.error("Error shifting planning tasks by days", error=str(exc), exc_info=True)
        db.session.rollback()
        return jsonify({
            "error": "Failed to shift planning tasks",
            "details": str(exc)
        }), 500


@production_bp.route("/planning/auto-plan", methods=["POST"])
def auto_plan():
    """Draft a plan for the posted orders on top of the committed schedule. Nothing is saved."""
    try:
        data = request.get_json(silent=True) or {}
        tz_name = current_app.config['PLANT_TIMEZONE']
        try:
            raw_orders = data.get('orders')
            if not isinstance(raw_orders, list) or not raw_orders:
                raise ValueError("orders must be a non-empty list")
            orders = [_parse_order(raw, tz_name) for raw in raw_orders]

            machines = data.get('machines')
            if machines is not None and (
                not isinstance(machines, list) or not all(isinstance(m, str) for m in machines)
            ):
                raise ValueError("machines must be a list of names")

            config = _parse_strategy_config(data)
            now = _parse_optional_timestamp(data.get('now'), tz_name)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        result = generate_auto_plan(orders, machines=machines, config=config, now=now)
        return jsonify({
            "strategy": config.main_strategy.value,
            "tasks": [task.to_dict() for task in result.tasks],
            "skipped": [
                {"order_id": skipped.order.id, "reason": skipped.reason}
                for skipped in result.skipped
            ],
            "metrics": result.metrics.to_dict(),
        }), 200

    except Exception as exc:
        logger.error("Error generating automated plan", error=str(exc), exc_info=True)
        return jsonify({
            "error": "Failed to generate automated plan",
            "details": str(exc)
        }), 500


@production_bp.route("/calendar/next-valid")
def next_valid_time():
    """Next working instant at or after ?at= (plant-local)."""
    raw_at = request.args.get('at')
    if not raw_at:
        return jsonify({"error": "at is required"}), 400

    try:
        at = parse_planning_timestamp(raw_at, current_app.config['PLANT_TIMEZONE'])
    except ValueError:
        return jsonify({"error": "at must be an ISO timestamp"}), 400

    calendar = get_work_calendar()
    return jsonify({
        "at": format_planning_timestamp(at),
        "next_valid": format_planning_timestamp(calendar.next_valid_work_time(at)),
        "is_working_time": calendar.is_working_time(at),
    }), 200


@production_bp.route("/machines/utilization")
def utilization():
    """Shift utilization per machine over ?start=YYYY-MM-DD&end=YYYY-MM-DD (inclusive)."""
    try:
        try:
            window_start = parse_planning_date(request.args.get('start', ''))
            window_end = parse_planning_date(request.args.get('end', ''))
        except (ValueError, TypeError):
            return jsonify({"error": "start and end must be in YYYY-MM-DD format"}), 400

        if window_end < window_start:
            return jsonify({"error": "end must not be before start"}), 400

        machines = request.args.getlist('machine') or None

        range_start = datetime.combine(window_start, datetime.min.time())
        range_end = datetime.combine(window_end, datetime.min.time()) + timedelta(days=1)
        query = PlanningTask.query.filter(
            PlanningTask.planned_date < range_end,
            PlanningTask.planned_end > range_start,
        )
        if machines:
            query = query.filter(PlanningTask.machine.in_(machines))

        tasks = [task_from_record(record) for record in query.all()]

        return jsonify({
            "start": window_start.isoformat(),
            "end": window_end.isoformat(),
            "utilization": machine_utilization(
                tasks, window_start, window_end,
                machines=machines,
                calendar=get_work_calendar(),
            ),
        }), 200

    except Exception as exc:
        logger.error("Error calculating machine utilization", error=str(exc), exc_info=True)
        return jsonify({
            "error": "Failed to calculate machine utilization",
            "details": str(exc)
        }), 500
