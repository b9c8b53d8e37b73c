from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress

# Load environment variables early so config is available for blueprint creation
load_dotenv()

from campusquiz.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()


def _is_api_path(path: str) -> bool:
    return '/api/' in path


def create_app(test_config: dict | None = None) -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    and registers the quiz blueprint.
    """
    # Re-initialize config to ensure latest .env values are loaded
    from campusquiz.config import Config
    global config
    config = Config()

    # Validate configuration
    config.validate()

    app = Flask(__name__)

    # Load configuration from config module
    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.config["DEBUG"] = config.FLASK_DEBUG
    db_uri = config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = config.SQLALCHEMY_ECHO
    app.config["QUIZ_EVALUATE_ON_SUBMIT"] = config.QUIZ_EVALUATE_ON_SUBMIT
    app.config["QUIZ_SWEEP_ON_READ"] = config.QUIZ_SWEEP_ON_READ

    # Response compression settings
    app.config["COMPRESS_MIMETYPES"] = ['application/json']
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500
    app.config["SESSION_COOKIE_SECURE"] = config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = config.SESSION_COOKIE_SAMESITE

    if test_config:
        app.config.update(test_config)

    # Database connection pooling only applies to the MySQL server deployment
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("mysql"):
        if "?" not in app.config["SQLALCHEMY_DATABASE_URI"]:
            app.config["SQLALCHEMY_DATABASE_URI"] += "?charset=utf8mb4"
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "charset": "utf8mb4",
            }
        })

    app.logger.setLevel(config.LOG_LEVEL)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    @app.after_request
    def add_api_headers(response):
        """API responses carry per-user state and must never be cached."""
        if _is_api_path(request.path):
            response.cache_control.no_store = True
        return response

    # User loader function for Flask-Login
    @login_manager.user_loader
    def load_user(user_id):
        from campusquiz.auth.models import User
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            return None

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        """Authentication is owned by the identity service; API callers get JSON."""
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    # Custom error handlers for API routes to return JSON instead of HTML
    @app.errorhandler(403)
    def handle_403(e):
        if _is_api_path(request.path):
            return jsonify({'success': False, 'error': 'Forbidden'}), 403
        return e

    @app.errorhandler(404)
    def handle_404(e):
        path = request.path
        method = request.method
        app.logger.warning(f"404 error: {method} {path}")
        if _is_api_path(path):
            return jsonify({
                'success': False,
                'error': f'Route not found: {method} {path}',
                'path': path,
                'method': method
            }), 404
        return f"Page not found: {path}", 404

    @app.errorhandler(405)
    def handle_405(e):
        path = request.path
        method = request.method
        app.logger.warning(f"405 error: {method} {path}")
        if _is_api_path(path):
            return jsonify({
                'success': False,
                'error': f'Method not allowed: {method} {path}',
                'path': path,
                'method': method
            }), 405
        return e

    # Register quiz blueprint
    from campusquiz.quiz import quiz_bp
    app.register_blueprint(quiz_bp, url_prefix=config.QUIZ_URL_PREFIX)

    from campusquiz.quiz.commands import quiz_cli
    app.cli.add_command(quiz_cli)

    # Create tables if they do not exist
    with app.app_context():
        from campusquiz.auth.models import User  # noqa: F401
        from campusquiz.quiz import models  # noqa: F401
        db.create_all()

    return app
