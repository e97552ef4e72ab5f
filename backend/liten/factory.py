"""Application factory wiring Flask extensions, auth components and blueprints."""

from __future__ import annotations

from flask import Flask

from liten.core.config import BaseConfig, get_config
from liten.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    Order matters: extensions (database, Redis) exist before the auth
    components are built, and error handlers are attached after blueprints.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from liten.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from liten.core import cors

    cors.init_app(app)

    from liten.core import wiring

    wiring.init_app(app)

    from liten.api import init_app as init_api

    init_api(app)

    from liten.core import errors

    errors.init_app(app)

    from liten import cli as app_cli

    app_cli.init_app(app)

    return app
