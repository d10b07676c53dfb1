from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

from shopfloor.datetime_utils import format_planning_timestamp

db = SQLAlchemy()


class PlanningTask(db.Model):
    """One planned production step of an order on a machine."""
    __tablename__ = "planning_tasks"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=True, index=True)
    machine = db.Column(db.String(100), nullable=True, index=True)
    register = db.Column(db.String(16), nullable=True)  # step number within the order

    planned_date = db.Column(db.DateTime, nullable=False, index=True)
    planned_end = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(32), nullable=False, default="pending")
    locked = db.Column(db.Boolean, nullable=False, default=False)
    check_in = db.Column(db.DateTime, nullable=True)  # set when work physically starts

    last_updated_at = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)

    def __repr__(self):
        return f"<PlanningTask {self.id} {self.machine} {self.planned_date}->{self.planned_end}>"

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "machine": self.machine,
            "register": self.register,
            "planned_date": format_planning_timestamp(self.planned_date),
            "planned_end": format_planning_timestamp(self.planned_end),
            "status": self.status,
            "locked": bool(self.locked),
            "check_in": format_planning_timestamp(self.check_in),
            "last_updated_at": self.last_updated_at.isoformat() if self.last_updated_at else None,
        }
