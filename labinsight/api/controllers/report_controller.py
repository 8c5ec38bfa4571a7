from flask import request, jsonify, send_file
from flask_jwt_extended import current_user
from labinsight.services import report_service
from labinsight.services.auth_service import ensure_patient_access
from labinsight.utils.errors import Forbidden, ValidationError


def _email_param():
    email = request.args.get('email')
    if not email:
        raise ValidationError('Email query param required')
    ensure_patient_access(current_user, email)
    return email


def upload_report():
    """Upload a lab report for the caller, or for a patient the caller may act for."""
    email = request.form.get('email')
    if not email:
        if current_user.role != 'patient':
            raise ValidationError('email form field is required when uploading for a patient')
        email = current_user.email
    ensure_patient_access(current_user, email)

    report = report_service.store_report(email, request.files.get('file'))
    return jsonify({
        'message': 'Upload Successful',
        'report_id': report.file_id,
        'ai_summary': report.ai_summary,
        'testResults': report.test_results,
    }), 200


def get_reports():
    return jsonify({'reports': report_service.list_reports(_email_param())}), 200


def get_all_reports():
    return jsonify({'reports': report_service.list_full_reports(_email_param())}), 200


def get_report(file_id):
    report = report_service.get_report(file_id)
    ensure_patient_access(current_user, report.user_email)
    return jsonify(report.to_dict()), 200


def download_report(file_id):
    report = report_service.get_report(file_id)
    ensure_patient_access(current_user, report.user_email)
    path = report_service.report_file_path(report)
    return send_file(path, as_attachment=True, download_name=report.file_name)


def delete_report(file_id):
    report = report_service.get_report(file_id)
    if current_user.role != 'admin' and current_user.email != report.user_email:
        raise Forbidden('Can only delete your own reports')
    report_service.delete_report(file_id)
    return jsonify({'message': 'Report deleted successfully'}), 200


def get_latest_report():
    report = report_service.latest_report(_email_param())
    return jsonify({'latestReport': report.to_dict()}), 200
