"""
Tests for the production planning routes (Flask endpoints).
These tests verify HTTP request/response handling and error mapping.
"""
import json
from datetime import datetime
from unittest.mock import patch

from shopfloor.models import PlanningTask, db
from shopfloor.production.scheduling.preview import run_preview_script


def dt(day, hour, minute=0):
    return datetime(2026, 2, day, hour, minute)


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type='application/json')


# ==============================================================================
# POST /production/planning/shift
# ==============================================================================

class TestShiftRoute:

    def test_shift_success(self, client, make_task):
        batch = make_task("CNC-1", dt(1, 10), dt(1, 12))
        make_task("CNC-1", dt(11, 10), dt(11, 11))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T09:00:00',
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['target'] == '2026-02-11T09:00:00'
        assert data['updated'] == 1
        assert data['tasks'][0]['planned_date'] == '2026-02-11T11:00:00'
        assert data['tasks'][0]['planned_end'] == '2026-02-11T13:00:00'

    def test_utc_target_is_converted_to_plant_time(self, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T15:00:00Z',
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['target'] == '2026-02-11T09:00:00'
        assert data['tasks'][0]['planned_date'] == '2026-02-11T09:00:00'

    def test_target_is_snapped_to_quarter_hour(self, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T09:04:00',
        })

        data = json.loads(response.data)
        assert data['target'] == '2026-02-11T09:15:00'

    def test_snap_can_be_disabled(self, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T09:04:00',
            'snap': False,
        })

        data = json.loads(response.data)
        assert data['target'] == '2026-02-11T09:04:00'

    def test_dry_run_does_not_write(self, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T09:00:00',
            'dry_run': True,
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['dry_run'] is True
        assert data['tasks'][0]['computed_planned_date'] == '2026-02-11T09:00:00'
        assert db.session.get(PlanningTask, batch.id).planned_date == dt(2, 8)

    def test_missing_task_ids(self, client):
        response = post_json(client, '/production/planning/shift', {'target': '2026-02-11T09:00:00'})

        assert response.status_code == 400
        assert 'task_ids' in json.loads(response.data)['error']

    def test_non_integer_task_ids(self, client):
        response = post_json(client, '/production/planning/shift', {'task_ids': ['abc']})

        assert response.status_code == 400

    def test_boolean_fractional_and_string_ids_rejected(self, client, make_task):
        make_task("CNC-1", dt(2, 8), dt(2, 9))

        for bad in ([True], [1.9], ["1"], [1, False]):
            response = post_json(client, '/production/planning/shift', {
                'task_ids': bad,
                'target': '2026-02-11T09:00:00',
            })
            assert response.status_code == 400, f"task_ids={bad!r} should be rejected"

    def test_invalid_target(self, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': 'next tuesday',
        })

        assert response.status_code == 400

    def test_unknown_task(self, client):
        response = post_json(client, '/production/planning/shift', {
            'task_ids': [404],
            'target': '2026-02-11T09:00:00',
        })

        assert response.status_code == 404
        assert json.loads(response.data)['missing_ids'] == [404]

    @patch('shopfloor.production.routes.shift_planning_tasks')
    def test_unexpected_error(self, mock_shift, client):
        mock_shift.side_effect = Exception("Database error")

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [1],
            'target': '2026-02-11T09:00:00',
        })

        assert response.status_code == 500
        data = json.loads(response.data)
        assert data['error'] == 'Failed to shift planning tasks'
        assert data['details'] == 'Database error'


# ==============================================================================
# POST /production/planning/shift-days
# ==============================================================================

class TestShiftDaysRoute:

    def test_shift_days_success(self, client, make_task):
        batch = make_task("CNC-1", dt(14, 9), dt(14, 10))

        response = post_json(client, '/production/planning/shift-days', {
            'task_ids': [batch.id],
            'offset_days': 1,
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['offset_days'] == 1
        assert data['tasks'][0]['planned_date'] == '2026-02-16T06:00:00'

    def test_offset_must_be_integer(self, client, make_task):
        batch = make_task("CNC-1", dt(14, 9), dt(14, 10))

        for bad in ('1', 1.5, True, None):
            response = post_json(client, '/production/planning/shift-days', {
                'task_ids': [batch.id],
                'offset_days': bad,
            })
            assert response.status_code == 400, f"offset_days={bad!r} should be rejected"

    def test_offset_out_of_range_rejected(self, client, make_task):
        batch = make_task("CNC-1", dt(14, 9), dt(14, 10))

        for bad in (10 ** 7, -(10 ** 7), 3661):
            response = post_json(client, '/production/planning/shift-days', {
                'task_ids': [batch.id],
                'offset_days': bad,
            })
            assert response.status_code == 400, f"offset_days={bad!r} should be rejected"
            assert 'offset_days' in json.loads(response.data)['error']

        assert db.session.get(PlanningTask, batch.id).planned_date == dt(14, 9)

    def test_offset_limit_comes_from_config(self, app, client, make_task):
        app.config['MAX_SHIFT_DAYS'] = 5
        batch = make_task("CNC-1", dt(14, 9), dt(14, 10))

        response = post_json(client, '/production/planning/shift-days', {
            'task_ids': [batch.id],
            'offset_days': 6,
        })

        assert response.status_code == 400

    def test_dry_run(self, client, make_task):
        batch = make_task("CNC-1", dt(14, 9), dt(14, 10))

        response = post_json(client, '/production/planning/shift-days', {
            'task_ids': [batch.id],
            'offset_days': -1,
            'dry_run': True,
        })

        data = json.loads(response.data)
        assert data['dry_run'] is True
        assert data['tasks'][0]['computed_planned_date'] == '2026-02-13T06:00:00'
        assert db.session.get(PlanningTask, batch.id).planned_date == dt(14, 9)


# ==============================================================================
# HTTP and command-line preview agree on the target
# ==============================================================================

class TestTargetSnappingParity:

    @patch('builtins.print')
    def test_explicit_target_is_snapped_on_both_paths(self, mock_print, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        response = post_json(client, '/production/planning/shift', {
            'task_ids': [batch.id],
            'target': '2026-02-11T09:04:00',
            'dry_run': True,
        })
        cli_preview = run_preview_script([batch.id], '2026-02-11T09:04:00', show_all=True)

        http_preview = json.loads(response.data)
        assert http_preview['summary']['target'] == '2026-02-11T09:15:00'
        assert cli_preview['summary']['target'] == '2026-02-11T09:15:00'
        assert http_preview['tasks'][0]['computed_planned_date'] == '2026-02-11T09:15:00'
        assert cli_preview['tasks'][0]['computed_planned_date'] == '2026-02-11T09:15:00'

    @patch('builtins.print')
    def test_cli_snap_can_be_disabled(self, mock_print, client, make_task):
        batch = make_task("CNC-1", dt(2, 8), dt(2, 9))

        cli_preview = run_preview_script([batch.id], '2026-02-11T09:04:00', show_all=True, snap=False)

        assert cli_preview['tasks'][0]['computed_planned_date'] == '2026-02-11T09:04:00'


# ==============================================================================
# GET /production/calendar/next-valid
# ==============================================================================

class TestNextValidRoute:

    def test_sunday(self, client):
        response = client.get('/production/calendar/next-valid?at=2026-02-08T12:00:00')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['next_valid'] == '2026-02-09T06:00:00'
        assert data['is_working_time'] is False

    def test_working_time(self, client):
        response = client.get('/production/calendar/next-valid?at=2026-02-11T09:30:00')

        data = json.loads(response.data)
        assert data['next_valid'] == '2026-02-11T09:30:00'
        assert data['is_working_time'] is True

    def test_missing_at(self, client):
        assert client.get('/production/calendar/next-valid').status_code == 400

    def test_invalid_at(self, client):
        assert client.get('/production/calendar/next-valid?at=tomorrow').status_code == 400


# ==============================================================================
# GET /production/machines/utilization
# ==============================================================================

class TestUtilizationRoute:

    def test_utilization(self, client, make_task):
        make_task("CNC-1", dt(11, 6), dt(11, 14))
        make_task("Lathe", dt(11, 6), dt(11, 10))

        response = client.get('/production/machines/utilization?start=2026-02-11&end=2026-02-11')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['utilization'] == {"CNC-1": 50, "Lathe": 25}

    def test_machine_filter(self, client, make_task):
        make_task("CNC-1", dt(11, 6), dt(11, 14))
        make_task("Lathe", dt(11, 6), dt(11, 10))

        response = client.get(
            '/production/machines/utilization?start=2026-02-11&end=2026-02-11&machine=Lathe&machine=Press'
        )

        data = json.loads(response.data)
        assert data['utilization'] == {"Lathe": 25, "Press": 0}

    def test_tasks_outside_window_are_ignored(self, client, make_task):
        make_task("CNC-1", dt(12, 6), dt(12, 14))

        response = client.get('/production/machines/utilization?start=2026-02-11&end=2026-02-11')

        assert json.loads(response.data)['utilization'] == {}

    def test_bad_dates(self, client):
        assert client.get('/production/machines/utilization?start=2026-02-11').status_code == 400
        assert client.get('/production/machines/utilization?start=11/02/2026&end=2026-02-11').status_code == 400

    def test_end_before_start(self, client):
        response = client.get('/production/machines/utilization?start=2026-02-12&end=2026-02-11')

        assert response.status_code == 400


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert json.loads(response.data) == {"status": "ok"}


# ==============================================================================
# POST /production/planning/auto-plan
# ==============================================================================

class TestAutoPlanRoute:

    def test_auto_plan(self, client, make_task):
        make_task("CNC-1", dt(11, 9), dt(11, 12), order_id="OP-0", locked=True)

        response = post_json(client, '/production/planning/auto-plan', {
            'now': '2026-02-11T09:00:00',
            'orders': [{
                'id': 'OP-1',
                'delivery_date': '2026-02-11T13:00:00',
                'created_at': '2026-02-10T09:00:00',
                'evaluation': [{'machine': 'CNC-1', 'hours': 2}],
            }],
        })

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['strategy'] == 'DELIVERY_DATE'
        assert data['tasks'][0]['planned_date'] == '2026-02-11T12:00:00'
        assert data['tasks'][0]['planned_end'] == '2026-02-11T14:00:00'
        assert data['tasks'][0]['is_draft'] is True
        assert data['metrics']['late_orders'] == 1
        assert data['metrics']['total_orders'] == 1
        assert PlanningTask.query.count() == 1

    def test_skipped_orders_are_reported(self, client):
        response = post_json(client, '/production/planning/auto-plan', {
            'now': '2026-02-11T09:00:00',
            'machines': ['CNC-1'],
            'orders': [{'id': 'OP-1', 'evaluation': [{'machine': 'Laser', 'hours': 1}]}],
        })

        data = json.loads(response.data)
        assert data['tasks'] == []
        assert data['skipped'] == [{'order_id': 'OP-1', 'reason': 'Unknown machine: Laser'}]

    def test_bad_requests(self, client):
        bad_bodies = [
            {},
            {'orders': []},
            {'orders': [{'evaluation': []}]},
            {'orders': [{'id': 'OP-1', 'evaluation': [{'hours': 1}]}]},
            {'orders': [{'id': 'OP-1', 'evaluation': [{'machine': 'CNC-1', 'hours': -1}]}]},
            {'orders': [{'id': 'OP-1', 'delivery_date': 'soon'}]},
            {'orders': [{'id': 'OP-1'}], 'strategy': 'RANDOM'},
            {'orders': [{'id': 'OP-1'}], 'machines': 'CNC-1'},
        ]

        for body in bad_bodies:
            response = post_json(client, '/production/planning/auto-plan', body)
            assert response.status_code == 400, f"{body!r} should be rejected"

    @patch('shopfloor.production.routes.generate_auto_plan')
    def test_unexpected_error(self, mock_plan, client):
        mock_plan.side_effect = Exception("Database error")

        response = post_json(client, '/production/planning/auto-plan', {'orders': [{'id': 'OP-1'}]})

        assert response.status_code == 500
        assert json.loads(response.data)['error'] == 'Failed to generate automated plan'
