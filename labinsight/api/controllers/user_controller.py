from flask import request, jsonify
from flask_jwt_extended import current_user
from labinsight.extensions import db
from labinsight.models.patient_profile_models import PatientProfile, PROFILE_FIELDS, LIST_FIELDS, UNIT_PREFERENCES
from labinsight.utils.errors import NotFound, ValidationError


def get_current_user_details():
    """
    Get details for the currently authenticated user.
    """
    return jsonify(current_user.to_dict()), 200


def _own_profile():
    profile = PatientProfile.query.filter_by(email=current_user.email).first()
    if not profile:
        raise NotFound('Profile not found')
    return profile


def get_profile():
    return jsonify(_own_profile().to_dict()), 200


def update_profile():
    """Updates the caller's medical profile from camelCase API fields."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')

    profile = _own_profile()
    for api_name, column in PROFILE_FIELDS.items():
        if api_name not in data:
            continue
        value = data[api_name]
        if column in LIST_FIELDS:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError(f'{api_name} must be a list of strings')
        elif value is None:
            value = ''
        elif not isinstance(value, (str, int, float)):
            raise ValidationError(f'{api_name} must be a string')
        else:
            value = str(value)
        setattr(profile, column, value)

    if profile.unit_preference not in UNIT_PREFERENCES:
        raise ValidationError(f"unitPreference must be one of: {', '.join(UNIT_PREFERENCES)}")

    if 'name' in data and data['name']:
        current_user.name = profile.name

    db.session.commit()
    return jsonify({'message': 'Profile updated successfully', 'profile': profile.to_dict()}), 200
