from flask import request, jsonify
from flask_jwt_extended import current_user
from sqlalchemy.exc import IntegrityError
from labinsight.extensions import db
from labinsight.models.user_models import User, DoctorProfile, ROLES
from labinsight.services import account_service
from labinsight.utils.errors import Conflict, ValidationError
from labinsight.utils.validators import string_field

# Free-text doctor profile fields: API name -> column
DOCTOR_TEXT_FIELDS = {
    'specialization': 'specialization',
    'phone': 'phone',
    'education': 'education',
    'licenseNumber': 'license_number',
    'availability': 'availability',
}


def get_all_users():
    role = request.args.get('role')
    query = User.query
    if role:
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        query = query.filter_by(role=role)
    users = query.order_by(User.created_at.desc()).all()
    return jsonify({'users': [u.to_dict() for u in users], 'count': len(users)}), 200


def register_doctor():
    """Provisions a doctor account together with its profile."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')

    name = string_field(data.get('name'), 'name')
    email = User.normalize_email(data.get('email'))
    password = string_field(data.get('password'), 'password', strip=False)
    if not (name and email and password):
        raise ValidationError('Missing required fields: name, email, password')

    details = {
        column: string_field(data.get(api_name), api_name, default=None)
        for api_name, column in DOCTOR_TEXT_FIELDS.items()
    }

    if User.find_by_email(email):
        raise Conflict('Email already exists')

    experience = data.get('experienceYears')
    if experience is not None and (not isinstance(experience, int) or isinstance(experience, bool) or experience < 0):
        raise ValidationError('experienceYears must be a non-negative integer')
    certifications = data.get('certifications') or []
    if not isinstance(certifications, list):
        raise ValidationError('certifications must be a list')

    user = User(name=name, email=email, role='doctor', auth_provider='local')
    try:
        user.set_password(password)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    profile = DoctorProfile(
        user_email=email,
        experience_years=experience,
        certifications=certifications,
        **details,
    )

    db.session.add_all([user, profile])
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict('Email already exists') from e

    return jsonify({'message': 'Doctor registered successfully', 'user': user.to_dict()}), 201


def delete_user(email):
    outcomes = account_service.admin_delete_account(current_user, email)
    return jsonify({
        'message': 'Account and all associated data deleted successfully',
        'cleanup': {o.step: 'ok' if o.ok else 'failed' for o in outcomes},
    }), 200
