"""Application route blueprints and helpers."""

from .auth import auth_bp, require_capability, require_login
from .courses import courses_bp
from .departments import departments_bp
from .reports import reports_bp
from .students import students_bp

BLUEPRINTS = (auth_bp, courses_bp, departments_bp, students_bp, reports_bp)

__all__ = [
    "BLUEPRINTS",
    "auth_bp",
    "courses_bp",
    "departments_bp",
    "reports_bp",
    "students_bp",
    "require_capability",
    "require_login",
]
