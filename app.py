# app.py
"""
Flask backend for the grid application.
Bases hold tables of typed columns, rows and cells; every operation is a
named procedure served under /api/<procedure>. Queries are GET requests
with their input in the query string, mutations are POST requests with a
JSON body. The caller's identity comes from the upstream session layer
as a request header.
"""

import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import bases
import tables
from errors import GridError, StorageError, UnauthorizedError
from models import db
from rpc import MUTATION, QUERY, RequestContext, dispatch

# Load environment variables
load_dotenv()

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

PROCEDURES = {**bases.procedures, **tables.procedures}


def _env_flag(name):
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def create_app(test_config=None):
    app = Flask(__name__)

    # ----------------- Configuration -----------------
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///grid.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ECHO"] = _env_flag("SQLALCHEMY_ECHO")
    app.json.sort_keys = False  # preserve order in JSON
    app.config["CORS_ORIGINS"] = os.environ.get("CORS_ORIGINS", "*")
    app.config["GRID_USER_HEADER"] = os.environ.get("GRID_USER_HEADER", "X-User-Id")
    app.config["POSITION_RETRIES"] = int(os.environ.get("POSITION_RETRIES", "5"))
    if test_config:
        app.config.update(test_config)

    CORS(app, origins=[o.strip() for o in app.config["CORS_ORIGINS"].split(",")])
    db.init_app(app)

    # Create tables if not exist
    with app.app_context():
        db.create_all()

    _register_error_handlers(app)
    _register_routes(app)
    _register_commands(app)
    return app


# ----------------- Helper: Request Context -----------------
def request_context():
    user_id = request.headers.get(current_app.config["GRID_USER_HEADER"], "").strip()
    if not user_id:
        raise UnauthorizedError("Missing caller identity")
    return RequestContext(
        user_id=user_id,
        db=db.session,
        position_retries=current_app.config["POSITION_RETRIES"],
    )


def _register_error_handlers(app):
    @app.errorhandler(GridError)
    def handle_grid_error(error):
        if error.status >= 500:
            logger.error("%s: %s", error.code, error.message)
        else:
            logger.warning("Rejected %s %s: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        logger.error("Database error on %s: %s", request.path, error)
        return handle_grid_error(StorageError(f"Database error: {error.__class__.__name__}"))


# ----------------- Routes -----------------
def _register_routes(app):
    @app.route("/api/<string:procedure>", methods=["GET"])
    def call_query(procedure):
        """
        GET /api/<procedure>?<input fields>
        Runs a query procedure, e.g. /api/table.getById?id=...
        """
        ctx = request_context()
        result = dispatch(PROCEDURES, procedure, ctx, request.args.to_dict(), QUERY)
        return jsonify({"status": "success", "data": result})

    @app.route("/api/<string:procedure>", methods=["POST"])
    def call_mutation(procedure):
        """
        POST /api/<procedure>
        Body: the procedure input as a JSON object, e.g. {"tableId": "..."}
        """
        ctx = request_context()
        payload = request.get_json(silent=True)
        if payload is not None and not isinstance(payload, dict):
            payload = {"input": payload}  # fails schema validation below
        result = dispatch(PROCEDURES, procedure, ctx, payload, MUTATION)
        return jsonify({"status": "success", "data": result})

    @app.route("/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Database health check failed: %s", e)
            return jsonify({"status": "unhealthy"}), 503
        return jsonify({"status": "healthy"})

    @app.route("/")
    def home():
        return jsonify({
            "service": "grid",
            "queries": sorted(n for n, p in PROCEDURES.items() if p.kind == QUERY),
            "mutations": sorted(n for n, p in PROCEDURES.items() if p.kind == MUTATION),
        })


# ----------------- CLI -----------------
def _register_commands(app):
    @app.cli.command("check-env")
    def check_env():
        """Report whether DATABASE_URL was loaded."""
        if os.environ.get("DATABASE_URL"):
            click.echo("SUCCESS: DATABASE_URL was found!")
        else:
            click.echo("FAILURE: DATABASE_URL was NOT FOUND in the environment!")
        click.echo(f"Database URI in use: {current_app.config['SQLALCHEMY_DATABASE_URI']}")

    @app.cli.command("init-db")
    def init_db():
        """Create all grid tables."""
        db.create_all()
        click.echo("Database tables created.")


if __name__ == "__main__":
    create_app().run(debug=True, host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
