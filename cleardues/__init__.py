import os

from flask import Flask, jsonify

from cleardues.extensions import db, login_manager
from config import Config


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///'):
        os.makedirs(os.path.join(os.path.dirname(app.root_path), 'instance'), exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from cleardues.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Authentication required'}), 401

    # Register blueprints
    from cleardues.routes.auth import auth_bp
    from cleardues.routes.groups import groups_bp
    from cleardues.routes.expenses import expenses_bp
    from cleardues.routes.settlements import settlements_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(settlements_bp)

    register_error_handlers(app)

    with app.app_context():
        db.create_all()
        app.logger.info("Database tables ready")

    return app


def register_error_handlers(app):
    from cleardues.services import (
        AuthorizationError, ExpenseError, GroupError, SettlementError, SplitError
    )

    @app.errorhandler(AuthorizationError)
    def handle_forbidden(error):
        return jsonify({'success': False, 'message': str(error)}), 403

    @app.errorhandler(SplitError)
    @app.errorhandler(ExpenseError)
    @app.errorhandler(SettlementError)
    @app.errorhandler(GroupError)
    def handle_validation_error(error):
        app.logger.info("Rejected request: %s", error)
        return jsonify({'success': False, 'message': str(error)}), 400

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'success': False, 'message': 'Resource not found'}), 404

    @app.errorhandler(500)
    def handle_server_error(error):
        app.logger.exception("Unhandled error")
        return jsonify({'success': False, 'message': 'Internal Server Error'}), 500
