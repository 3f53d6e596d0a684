import os
import logging
from flask import Flask, g, session
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from config import DevConfig, ProdConfig

db = SQLAlchemy()
migrate = Migrate()
bcrypt = Bcrypt()
cors = CORS()
limiter = Limiter(key_func=get_remote_address)

def create_app(config_object=None):
    app = Flask(__name__, static_folder="../frontend/public", static_url_path="/")
    if config_object is None:
        env = os.getenv("FLASK_ENV", "development")
        config_object = ProdConfig if env == "production" else DevConfig
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Inicializa extensiones
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    limiter.init_app(app)

    from .guard import Principal

    @app.before_request
    def load_principal():
        # El principal vive solo durante la petición
        g.principal = Principal.from_session(session.get("usuario"))

    # Registrar Blueprints
    from .auth import auth_bp
    from .patients import patients_bp
    from .trials import trials_bp
    from .excel import excel_bp
    from .admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(patients_bp)
    app.register_blueprint(trials_bp)
    app.register_blueprint(excel_bp)
    app.register_blueprint(admin_bp)

    from .errors import register_error_handlers
    from .commands import register_commands

    register_error_handlers(app)
    register_commands(app)

    return app
