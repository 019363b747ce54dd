from flask import Flask, jsonify
from flask_cors import CORS
from config import get_config
from init_db import db, init_database
from utils.error_handler import register_error_handlers
from utils.logger import log_info


def create_app(config_name=None):
    app = Flask(__name__)

    # Load config
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Initialize DB and CORS
    db.init_app(app)
    CORS(app)

    # Initialize database tables
    init_database(app)

    register_error_handlers(app)

    # Register Blueprints
    from routes import init_routes
    init_routes(app)

    @app.route("/health")
    def health():
        return jsonify({'status': 'ok'})

    log_info(f"Fee ledger started with {config_class.__name__}")
    return app
