"""
Production Module
Flask Blueprint for production planning: moving planned tasks on the plant
calendar, calendar lookups and machine utilization.
"""
from flask import Blueprint

production_bp = Blueprint("production", __name__)

from shopfloor.production import routes  # noqa: E402,F401
