from functools import wraps
from flask import request, current_app, make_response
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request, current_user
from labinsight.services.auth_service import ensure_role
from labinsight.utils.errors import PortalError


def audit_log(action, resource):
    """Logs every call of the wrapped view to the audit logger."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = None
            ip_address = request.remote_addr

            try:
                # Attempt to get user_id from a valid JWT token
                user_id = get_jwt_identity()
            except RuntimeError:
                # No JWT token present (e.g., for signup or login)
                pass

            try:
                response = make_response(f(*args, **kwargs))
            except PortalError as e:
                current_app.audit_logger.warning(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', IP='{ip_address}', "
                    f"Success='False', Details='{e.code}: {e.message}'"
                )
                raise
            except Exception as e:
                current_app.audit_logger.error(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', IP='{ip_address}', "
                    f"Success='False', Details='An error occurred: {e}'"
                )
                raise

            success = response.status_code < 400
            current_app.audit_logger.info(
                f"Action='{action}', Resource='{resource}', UserID='{user_id}', IP='{ip_address}', "
                f"Success='{success}', Details='Status: {response.status_code}'"
            )
            return response

        return decorated_function
    return decorator


def require_role(*roles):
    """Allows the view only for authenticated users holding one of ``roles``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            ensure_role(current_user, roles)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
