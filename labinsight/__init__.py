import os
from flask import Flask
from labinsight.extensions import db, bcrypt, migrate, jwt, limiter, cors
from labinsight.utils.ai_client import analysis_client
from labinsight.utils.error_handlers import register_error_handlers, register_jwt_callbacks
from labinsight.commands import register_commands
from config import config

_jwt_callbacks_registered = False


def create_app(config_name=None):
    app = Flask(__name__)

    config_name = config_name or os.getenv('FLASK_CONFIG', 'default')
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        origins=app.config['ALLOWED_ORIGINS'],
        allow_headers=['Content-Type', 'Authorization'],
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
    )

    # Initialize custom utilities
    analysis_client.init_app(app)

    # Initialize app with config
    config_class.init_app(app)

    # Make sure every table is known to the metadata before create_all / migrations
    from labinsight import models  # noqa: F401

    # Register blueprints
    from labinsight.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # Register error handlers and commands
    register_error_handlers(app)
    register_commands(app)

    # The JWT manager is a module-level singleton, its loaders only need registering once
    global _jwt_callbacks_registered
    if not _jwt_callbacks_registered:
        register_jwt_callbacks()
        _jwt_callbacks_registered = True

    return app
