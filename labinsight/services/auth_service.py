# /labinsight/services/auth_service.py
"""Auth gateway: bearer tokens, role gating and the login flows."""
from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from jwt.exceptions import PyJWTError
from sqlalchemy.exc import IntegrityError

from labinsight.extensions import db
from labinsight.models.user_models import User
from labinsight.models.patient_profile_models import PatientProfile
from labinsight.models.connection_models import AssignedDoctor
from labinsight.utils.validators import string_field
from labinsight.utils.errors import (
    AccountLocked, Conflict, Forbidden, Unauthenticated, UpstreamUnavailable, ValidationError
)


def issue_token(user_id, email, role=None, expires_delta=None):
    """Signs an access token for ``user_id``; expiry defaults to JWT_ACCESS_TOKEN_EXPIRES."""
    claims = {'email': email}
    if role:
        claims['role'] = role
    kwargs = {'identity': str(user_id), 'additional_claims': claims}
    if expires_delta is not None:
        kwargs['expires_delta'] = expires_delta
    return create_access_token(**kwargs)


def verify_token(token):
    """Returns ``{'user_id', 'email'}`` for a valid token, else raises Unauthenticated."""
    if not token:
        raise Unauthenticated('Not authorized, no token')
    try:
        payload = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        current_app.logger.info(f"Token verification failed: {e}")
        raise Unauthenticated('Not authorized, token failed') from e

    try:
        user_id = int(payload['sub'])
    except (KeyError, TypeError, ValueError) as e:
        raise Unauthenticated('Not authorized, token failed') from e
    return {'user_id': user_id, 'email': payload.get('email')}


def ensure_role(user, allowed_roles):
    if user is None or user.role not in allowed_roles:
        raise Forbidden(f"Access denied. {' or '.join(r.capitalize() for r in allowed_roles)} only.")


def ensure_patient_access(user, patient_email):
    """Patients see their own data, doctors their assigned patients, admins everything."""
    patient_email = User.normalize_email(patient_email)
    if user.role == 'admin':
        return
    if user.role == 'patient' and user.email == patient_email:
        return
    if user.role == 'doctor':
        assigned = AssignedDoctor.query.filter_by(user_email=patient_email, doctor_email=user.email).first()
        if assigned:
            return
    raise Forbidden('You do not have access to this patient')


def register_patient(name, email, password):
    """Creates a local patient account together with its empty profile."""
    email = User.normalize_email(email)
    name = string_field(name, 'name')
    password = string_field(password, 'password', strip=False)
    if not email or not password:
        raise ValidationError('Name, email and password are required')
    if User.find_by_email(email):
        raise Conflict('User already exists')

    user = User(name=name, email=email, role='patient', auth_provider='local')
    try:
        user.set_password(password)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    db.session.add(user)
    db.session.add(PatientProfile.blank(email, user.name))
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict('User already exists') from e
    return user


def authenticate(email, password, required_role=None):
    """Password login; ``required_role`` restricts it to one kind of account."""
    email = User.normalize_email(email)
    password = string_field(password, 'password', strip=False)
    if not email or not password:
        raise ValidationError('Email and password are required')

    user = User.find_by_email(email)
    if not user or (required_role and user.role != required_role):
        if required_role:
            raise Unauthenticated(f'Invalid credentials or not a {required_role} account')
        raise Unauthenticated('Invalid credentials')
    if user.is_locked():
        raise AccountLocked()
    if user.is_external:
        raise Unauthenticated('This account uses Google sign-in')
    if not user.check_password(password):
        if user.is_locked():
            raise AccountLocked()
        raise Unauthenticated('Incorrect password')
    return user


def authenticate_google(credential):
    """Verifies a Google ID token, provisioning an external patient account on first use."""
    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    if not client_id:
        raise UpstreamUnavailable('Google sign-in is not configured')
    if not string_field(credential, 'credential'):
        raise ValidationError('Google credential is required')

    try:
        idinfo = id_token.verify_oauth2_token(credential, google_requests.Request(), client_id)
    except (ValueError, GoogleAuthError) as e:
        current_app.logger.info(f"Google token rejected: {e}")
        raise Unauthenticated('Invalid Google credential') from e

    email = User.normalize_email(idinfo.get('email'))
    if not email or not idinfo.get('email_verified', False):
        raise Unauthenticated('Google account email is not verified')

    user = User.find_by_email(email)
    if user:
        return user

    name = idinfo.get('name') or email.split('@')[0]
    user = User(name=name, email=email, role='patient', auth_provider='google')
    db.session.add(user)
    db.session.add(PatientProfile.blank(email, name))
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent first sign-in created it
        db.session.rollback()
        user = User.find_by_email(email)
    return user


def change_password(user, current_password, new_password):
    if user.is_external:
        raise ValidationError('Password changes are not available for Google accounts')
    current_password = string_field(current_password, 'currentPassword', strip=False)
    new_password = string_field(new_password, 'newPassword', strip=False)
    if not current_password or not new_password:
        raise ValidationError('Current and new passwords required')
    if user.is_locked():
        raise AccountLocked()
    if not user.check_password(current_password):
        raise Unauthenticated('Current password is incorrect')
    try:
        user.set_password(new_password)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    db.session.commit()
