# /labinsight/utils/error_handlers.py
from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from labinsight.extensions import db, jwt
from labinsight.models.user_models import User
from labinsight.utils.errors import PortalError, Unauthenticated, Internal


def _error_response(error):
    return jsonify(error.to_dict()), error.status_code


def register_error_handlers(app):
    @app.errorhandler(PortalError)
    def portal_error(error):
        db.session.rollback()
        if isinstance(error, Internal):
            current_app.logger.error(f"Internal error: {error.message}")
            return _error_response(Internal())
        return _error_response(error)

    @app.errorhandler(SQLAlchemyError)
    def storage_error(error):
        db.session.rollback()
        current_app.logger.exception(f"Storage failure: {error}")
        return _error_response(Internal())

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code

    @app.errorhandler(Exception)
    def unhandled_error(error):
        db.session.rollback()
        current_app.logger.exception(f"Unhandled error: {error}")
        return _error_response(Internal())


def register_jwt_callbacks():
    """Routes every token failure to a 401 and loads ``current_user``."""

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_data):
        try:
            return db.session.get(User, int(jwt_data['sub']))
        except (KeyError, TypeError, ValueError):
            return None

    @jwt.user_lookup_error_loader
    def user_not_found(jwt_header, jwt_data):
        return _error_response(Unauthenticated('Not authorized, user not found'))

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _error_response(Unauthenticated('Not authorized, no token'))

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _error_response(Unauthenticated('Not authorized, token failed'))

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_data):
        return _error_response(Unauthenticated('Not authorized, token expired'))
