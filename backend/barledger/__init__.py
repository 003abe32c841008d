# backend/barledger/__init__.py
from flask import Flask, jsonify, request
from sqlalchemy.exc import DBAPIError

from .config import Config
from .context import EXTENSION_KEY, BarContext, Settings
from .errors import BarError, StoreUnavailableError
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.insights_service import InsightClient
    from .services.subscriptions import SubscriptionHub

    app.extensions[EXTENSION_KEY] = BarContext(
        session=db.session,
        settings=Settings.from_mapping(app.config),
        hub=SubscriptionHub(),
        insights=InsightClient.from_config(app.config),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.suppliers import suppliers_bp
    from .routes.orders import orders_bp
    from .routes.ledger import ledger_bp
    from .routes.reports import reports_bp
    from .routes.insights import insights_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(insights_bp)

    @app.errorhandler(BarError)
    def handle_bar_error(e):
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(DBAPIError)
    def handle_store_error(e):
        app.logger.exception("Database failure")
        db.session.rollback()
        err = StoreUnavailableError("The database is temporarily unavailable, please retry")
        return jsonify(err.to_dict()), err.http_status

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
