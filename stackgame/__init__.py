from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_migrate import Migrate
from config import Config
from stackgame.models import db
from stackgame.errors import StackError
from stackgame.utils.db import configure_sqlite
import logging

jwt = JWTManager()
migrate = Migrate()
# Store revoked tokens in memory
jwt_blocklist = set()


def configure_logging(app):
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(app.config['LOG_FILE'], mode='a'))

    logging.basicConfig(
        level=logging.DEBUG if app.config['FLASK_ENV'] == 'development' else logging.INFO,
        format='%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers
    )
    logging.getLogger('stackgame').setLevel(logging.DEBUG)
    logging.getLogger('werkzeug').setLevel(logging.INFO)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)
    logger = logging.getLogger(__name__)
    logger.info("Starting application initialization")

    CORS(app,
         resources={
             r"/*": {
                 "origins": app.config.get('CORS_ORIGINS', '*'),
                 "methods": ["GET", "POST", "OPTIONS"],
                 "allow_headers": ["Content-Type", "Authorization", "Accept"],
                 "expose_headers": ["Content-Type", "Authorization"],
                 "supports_credentials": True
             }
         })

    # JWT Configuration
    app.config['JWT_TOKEN_LOCATION'] = ['headers']
    app.config['JWT_HEADER_NAME'] = 'Authorization'
    app.config['JWT_HEADER_TYPE'] = 'Bearer'

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({"error": "Invalid token"}), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({"error": "Authorization token is missing"}), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        return jsonify({"error": "Token has been revoked"}), 401

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload["jti"] in jwt_blocklist

    @app.errorhandler(StackError)
    def handle_stack_error(error):
        logger.info(f"Rejected request: {error}")
        return jsonify(error.to_dict()), error.status_code

    try:
        logger.info(
            f"Configuring database with URL: {app.config['DATABASE_URL']}")
        app.config.setdefault('SQLALCHEMY_DATABASE_URI', app.config['DATABASE_URL'])
        app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
        if not app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
            app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
                "pool_recycle": 300,
                "pool_pre_ping": True,
            }

        jwt.init_app(app)
        db.init_app(app)
        migrate.init_app(app, db)
        logger.info("Successfully initialized Flask extensions")

        with app.app_context():
            if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
                configure_sqlite(db.engine)
            db.create_all()
            logger.info("Database tables created successfully")

        from stackgame.routes import auth, game, stats, main
        app.register_blueprint(main.bp)
        app.register_blueprint(auth.bp, url_prefix='/auth')
        app.register_blueprint(game.bp, url_prefix='/api')
        app.register_blueprint(stats.bp, url_prefix='/api')
        logger.info("Successfully registered all blueprints")

        from stackgame.commands import register_commands
        register_commands(app)

    except Exception as e:
        logger.error(f"Error during application initialization: {str(e)}")
        raise

    logger.info("Application initialization completed successfully")
    return app
