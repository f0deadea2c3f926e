import logging

from core.imports import jsonify, text, Flask, datetime, SQLAlchemyError
from core.config import Config
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail
from core.errors import register_error_handlers
from routes.auth import auth_bp
from routes.products import products_bp
from routes.orders import orders_bp
from routes.payments import payments_bp

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"), format=LOG_FORMAT)

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)

    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        status = {
            "success": True,
            "message": "Server is running successfully",
            "timestamp": datetime.utcnow().isoformat(),
            "database": {"status": "healthy", "message": "Database connection successful"}
        }
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            app.logger.error("Health check database failure: %s", e)
            status["success"] = False
            status["database"] = {"status": "unhealthy", "message": "Database connection failed"}

        return jsonify(status), 200 if status["success"] else 503

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()

    app.run(debug=True)
