import pytest

from shopfloor import create_app
from shopfloor.models import PlanningTask, db


@pytest.fixture
def app():
    """Create Flask application for testing."""
    app = create_app({
        'TESTING': True,
        'ENV': 'testing',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LOG_FILE': None,
        'PLANT_TIMEZONE': 'America/Mexico_City',
        'WORK_DAY_START_HOUR': 6,
        'WORK_DAY_END_HOUR': 22,
        'WORKING_WEEKDAYS': '0,1,2,3,4,5',
        'PLANT_HOLIDAYS': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_task(app):
    """Insert a PlanningTask row and return it."""
    def _make_task(machine, planned_date, planned_end, order_id=None, locked=False, check_in=None):
        task = PlanningTask(
            machine=machine,
            planned_date=planned_date,
            planned_end=planned_end,
            order_id=order_id,
            locked=locked,
            check_in=check_in,
        )
        db.session.add(task)
        db.session.commit()
        return task

    return _make_task
