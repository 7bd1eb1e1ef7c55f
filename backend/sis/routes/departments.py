"""Department reference data."""

from flask import Blueprint, jsonify

from ..db import get_departments_collection, serialize_department

departments_bp = Blueprint("departments", __name__, url_prefix="/api/departments")


@departments_bp.get("")
def get_departments():
    cursor = get_departments_collection().find({}, sort=[("name", 1)])
    return jsonify([serialize_department(doc) for doc in cursor])


__all__ = ["departments_bp"]
