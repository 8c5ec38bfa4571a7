from flask import request, jsonify
from flask_jwt_extended import current_user
from labinsight.services import auth_service, account_service
from labinsight.services.auth_service import issue_token
from labinsight.models.user_models import User
from labinsight.utils.errors import Forbidden, ValidationError


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')
    return data


def _login_response(user, message, status=200):
    token = issue_token(user.id, user.email, user.role)
    return jsonify({
        'message': message,
        'token': token,
        'email': user.email,
        'name': user.name,
        'role': user.role,
    }), status


def signup():
    """Registers a patient and logs them straight in."""
    data = _json_body()
    user = auth_service.register_patient(data.get('name'), data.get('email'), data.get('password'))
    return _login_response(user, 'User created, profile initialized', 201)


def login():
    data = _json_body()
    user = auth_service.authenticate(data.get('email'), data.get('password'))
    return _login_response(user, 'Login successful')


def doctor_login():
    data = _json_body()
    user = auth_service.authenticate(data.get('email'), data.get('password'), required_role='doctor')
    return _login_response(user, 'Doctor login successful')


def admin_login():
    data = _json_body()
    user = auth_service.authenticate(data.get('email'), data.get('password'), required_role='admin')
    return _login_response(user, 'Admin login successful')


def google_login():
    data = _json_body()
    user = auth_service.authenticate_google(data.get('credential'))
    return _login_response(user, 'Google auth successful')


def change_password():
    data = _json_body()
    auth_service.change_password(current_user, data.get('currentPassword'), data.get('newPassword'))
    return jsonify({'message': 'Password updated successfully'}), 200


def delete_account():
    """Deletes the caller's own account and everything attached to it."""
    data = request.get_json(silent=True) or {}
    email = current_user.email
    if data.get('email') and User.normalize_email(data['email']) != email:
        raise Forbidden('You can only delete your own account')

    outcomes = account_service.delete_account(email, data.get('password'))
    return jsonify({
        'message': 'Account and all associated data deleted successfully',
        'cleanup': {o.step: 'ok' if o.ok else 'failed' for o in outcomes},
    }), 200
