# backend/stockledger/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, NOTIFIER_EXTENSION_KEY
from .notifications import LoggingNotifier


def create_app(config_overrides: dict | None = None, notifier=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Notification port; the ledger only ever talks to this object
    app.extensions[NOTIFIER_EXTENSION_KEY] = notifier or LoggingNotifier()

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.customers import customers_bp
    from .routes.alerts import alerts_bp

    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(alerts_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
