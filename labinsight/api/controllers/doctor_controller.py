from flask import request, jsonify
from flask_jwt_extended import current_user
from labinsight.services import connection_service, report_service


def get_all_doctors():
    return jsonify(connection_service.list_doctors()), 200


def get_my_requests():
    """Connection requests addressed to the logged-in doctor."""
    status = request.args.get('status')
    requests = connection_service.list_doctor_requests(current_user.email, status)
    return jsonify({'requests': requests, 'count': len(requests)}), 200


def accept_request(request_id):
    connection_request = connection_service.resolve_request(request_id, 'accept', current_user.email)
    return jsonify({'message': 'Request accepted', 'request': connection_request.to_dict()}), 200


def reject_request(request_id):
    data = request.get_json(silent=True) or {}
    connection_request = connection_service.resolve_request(
        request_id, 'reject', current_user.email, data.get('rejectionMessage')
    )
    return jsonify({'message': 'Request rejected', 'request': connection_request.to_dict()}), 200


def get_my_patients():
    patients = connection_service.list_assigned_patients(current_user.email)
    return jsonify({'patients': patients, 'count': len(patients)}), 200


def release_patient(patient_email):
    """Removes the link between the doctor and a patient, without deleting the patient."""
    connection_service.release_patient(current_user.email, patient_email)
    return jsonify({'message': 'Patient has been released from your care.'}), 200


def comment_on_report(file_id):
    data = request.get_json(silent=True) or {}
    report = report_service.add_doctor_comment(file_id, current_user.email, data.get('comment'))
    return jsonify({'message': 'Comment saved', 'report': report.to_dict()}), 200
