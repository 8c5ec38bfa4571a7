from flask import request, jsonify
from flask_jwt_extended import current_user
from labinsight.models.user_models import User
from labinsight.services import connection_service
from labinsight.services.auth_service import ensure_patient_access
from labinsight.utils.errors import Forbidden, ValidationError


def send_request():
    """Patient asks a doctor to take them on."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('JSON body required')

    # The patient is always the caller; a mismatching body field is refused
    patient_email = data.get('patientEmail')
    if patient_email and User.normalize_email(patient_email) != current_user.email:
        raise Forbidden('You can only send requests for yourself')

    connection_request = connection_service.submit_request(
        current_user.email, data.get('doctorEmail'), data.get('message')
    )
    return jsonify({
        'message': 'Your request has been sent and is pending approval.',
        'request': connection_request.to_dict(),
    }), 201


def get_connection_status(email):
    ensure_patient_access(current_user, email)
    return jsonify(connection_service.get_connection_status(email)), 200


def get_assigned_doctor(email):
    ensure_patient_access(current_user, email)
    return jsonify({'doctor': connection_service.get_assigned_doctor(email)}), 200
