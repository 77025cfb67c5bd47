import logging

from flask import Flask, jsonify
from config import Config
from extensions import store, login_manager
from utils.errors import DuplicateIdError, FileError, InvalidFieldError, RecordTooLongError


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    # init extensions
    store.init_app(app)
    login_manager.init_app(app)

    # import and register blueprints
    from auth.routes import auth_bp
    from routes import main_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)

    @app.errorhandler(InvalidFieldError)
    @app.errorhandler(RecordTooLongError)
    @app.errorhandler(ValueError)
    def bad_input(e):
        return jsonify(error=str(e)), 400

    @app.errorhandler(DuplicateIdError)
    def duplicate(e):
        return jsonify(error=str(e)), 409

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify(error="not allowed for this role"), 403

    @app.errorhandler(FileError)
    def file_error(e):
        app.logger.error("table access failed: %s", e)
        return jsonify(error="table unavailable, try again"), 503

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
