from __future__ import annotations

import logging
import traceback
from typing import Any, Dict

from flask import Flask, jsonify
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.exceptions import HTTPException

from . import config
from .config import ConfigError
from .errors import ServiceError
from .routes import BLUEPRINTS
from .routes.common import json_error

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.update(
    SECRET_KEY=config.get_secret_key(),
    SIS_TERM=config.get_current_term(),
    SIS_DEFAULT_CAPACITY=config.get_default_capacity(),
    SIS_TOKEN_MAX_AGE=config.get_token_max_age(),
    SIS_PRODUCTION=config.is_production(),
)

for blueprint in BLUEPRINTS:
    app.register_blueprint(blueprint)


@app.errorhandler(ServiceError)
def handle_service_error(exc: ServiceError):
    return json_error(exc.message, exc.status, exc.details)


@app.errorhandler(DuplicateKeyError)
def handle_duplicate_key(exc: DuplicateKeyError):
    logger.warning("Duplicate key rejected: %s", exc.details)
    return json_error(
        "Duplicate key error. Student number, ID number, or email already exists.",
        400,
    )


@app.errorhandler(ConfigError)
def handle_config_error(exc: ConfigError):
    logger.exception("Missing configuration for MongoDB")
    return json_error(str(exc), 500)


@app.errorhandler(PyMongoError)
def handle_db_error(exc: PyMongoError):
    logger.exception("Request failed due to MongoDB error")
    return json_error("Database unavailable. Please try again later.", 503)


@app.errorhandler(HTTPException)
def handle_http_exception(exc: HTTPException):
    return json_error(exc.description or exc.name, exc.code or 500)


@app.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    logger.exception("Unhandled error")
    payload: Dict[str, Any] = {"message": "Server error", "error": str(exc)}
    if not app.config["SIS_PRODUCTION"]:
        payload["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return jsonify(payload), 500


@app.get("/api/health")
def health():
    return jsonify({"ok": True, "term": str(app.config["SIS_TERM"])})


def main() -> None:
    logging.basicConfig(
        level=config.get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Serving term %s", app.config["SIS_TERM"])
    app.run(debug=not app.config["SIS_PRODUCTION"])


if __name__ == "__main__":
    main()
