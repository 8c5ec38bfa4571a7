# /labinsight/api/routes.py

from flask_jwt_extended import jwt_required
from . import api_bp
from labinsight.extensions import limiter
from labinsight.utils.decorators import audit_log, require_role
from .controllers import (
    auth_controller, user_controller, connection_controller, doctor_controller,
    report_controller, admin_controller
)


# --- Authentication Endpoints ---
@api_bp.route('/auth/signup', methods=['POST'])
@limiter.limit("5 per hour")
@audit_log("USER_SIGNUP", "users")
def signup():
    return auth_controller.signup()

@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("USER_LOGIN", "authentication")
def login():
    return auth_controller.login()

@api_bp.route('/auth/doctor-login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("DOCTOR_LOGIN", "authentication")
def doctor_login():
    return auth_controller.doctor_login()

@api_bp.route('/auth/admin-login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("ADMIN_LOGIN", "authentication")
def admin_login():
    return auth_controller.admin_login()

@api_bp.route('/auth/google', methods=['POST'])
@limiter.limit("20 per minute")
@audit_log("GOOGLE_LOGIN", "authentication")
def google_login():
    return auth_controller.google_login()

@api_bp.route('/auth/change-password', methods=['POST'])
@jwt_required()
@audit_log("PASSWORD_CHANGE", "authentication")
def change_password():
    return auth_controller.change_password()

@api_bp.route('/auth/delete-account', methods=['DELETE'])
@jwt_required()
@audit_log("DELETE_ACCOUNT", "users")
def delete_account():
    return auth_controller.delete_account()


# --- User Profile Endpoints ---
@api_bp.route('/users/me', methods=['GET'])
@jwt_required()
@audit_log("VIEW_OWN_USER", "users")
def get_current_user_route():
    return user_controller.get_current_user_details()

@api_bp.route('/profile', methods=['GET'])
@jwt_required()
@audit_log("VIEW_OWN_PROFILE", "profiles")
@require_role('patient')
def get_profile_route():
    return user_controller.get_profile()

@api_bp.route('/profile', methods=['PUT'])
@jwt_required()
@audit_log("UPDATE_OWN_PROFILE", "profiles")
@require_role('patient')
def update_profile_route():
    return user_controller.update_profile()


# --- Doctor Endpoints ---
@api_bp.route('/doctors', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ALL_DOCTORS", "doctors")
def get_doctors():
    return doctor_controller.get_all_doctors()

@api_bp.route('/doctor/requests', methods=['GET'])
@jwt_required()
@audit_log("VIEW_CONNECTION_REQUESTS", "connections")
@require_role('doctor')
def get_doctor_requests_route():
    return doctor_controller.get_my_requests()

@api_bp.route('/doctor/requests/<int:request_id>/accept', methods=['POST'])
@jwt_required()
@audit_log("ACCEPT_CONNECTION_REQUEST", "connections")
@require_role('doctor')
def accept_request_route(request_id):
    return doctor_controller.accept_request(request_id)

@api_bp.route('/doctor/requests/<int:request_id>/reject', methods=['POST'])
@jwt_required()
@audit_log("REJECT_CONNECTION_REQUEST", "connections")
@require_role('doctor')
def reject_request_route(request_id):
    return doctor_controller.reject_request(request_id)

@api_bp.route('/doctor/patients', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ASSIGNED_PATIENTS", "connections")
@require_role('doctor')
def get_doctor_patients_route():
    return doctor_controller.get_my_patients()

@api_bp.route('/doctor/patients/<string:email>', methods=['DELETE'])
@jwt_required()
@audit_log("RELEASE_PATIENT", "connections")
@require_role('doctor')
def release_patient_route(email):
    return doctor_controller.release_patient(email)

@api_bp.route('/doctor/reports/<string:file_id>/comment', methods=['POST'])
@jwt_required()
@audit_log("COMMENT_ON_REPORT", "reports")
@require_role('doctor')
def comment_on_report_route(file_id):
    return doctor_controller.comment_on_report(file_id)


# --- Connection Endpoints ---
@api_bp.route('/send-request', methods=['POST'])
@jwt_required()
@audit_log("SEND_CONNECTION_REQUEST", "connections")
@require_role('patient')
def send_request_route():
    return connection_controller.send_request()

@api_bp.route('/patient/connection-status/<string:email>', methods=['GET'])
@jwt_required()
@audit_log("VIEW_CONNECTION_STATUS", "connections")
def connection_status_route(email):
    return connection_controller.get_connection_status(email)

@api_bp.route('/assigned-doctor/<string:email>', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ASSIGNED_DOCTOR", "connections")
def assigned_doctor_route(email):
    return connection_controller.get_assigned_doctor(email)


# --- Report Endpoints ---
@api_bp.route('/upload-report', methods=['POST'])
@jwt_required()
@limiter.limit("30 per hour")
@audit_log("UPLOAD_REPORT", "reports")
def upload_report_route():
    return report_controller.upload_report()

@api_bp.route('/reports', methods=['GET'])
@jwt_required()
@audit_log("VIEW_REPORTS", "reports")
def get_reports_route():
    return report_controller.get_reports()

@api_bp.route('/all-reports', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ALL_REPORTS", "reports")
def get_all_reports_route():
    return report_controller.get_all_reports()

@api_bp.route('/report/<string:file_id>', methods=['GET'])
@jwt_required()
@audit_log("VIEW_REPORT", "reports")
def get_report_route(file_id):
    return report_controller.get_report(file_id)

@api_bp.route('/download-report/<string:file_id>', methods=['GET'])
@jwt_required()
@audit_log("DOWNLOAD_REPORT", "reports")
def download_report_route(file_id):
    return report_controller.download_report(file_id)

@api_bp.route('/delete-report/<string:file_id>', methods=['DELETE'])
@jwt_required()
@audit_log("DELETE_REPORT", "reports")
def delete_report_route(file_id):
    return report_controller.delete_report(file_id)

@api_bp.route('/my-latest-report', methods=['GET'])
@jwt_required()
@audit_log("VIEW_LATEST_REPORT", "reports")
def latest_report_route():
    return report_controller.get_latest_report()


# --- Admin Endpoints ---
@api_bp.route('/admin/users', methods=['GET'])
@jwt_required()
@audit_log("VIEW_ALL_USERS", "users")
@require_role('admin')
def get_all_users_route():
    return admin_controller.get_all_users()

@api_bp.route('/admin/doctors', methods=['POST'])
@jwt_required()
@limiter.limit("10 per hour")
@audit_log("DOCTOR_REGISTRATION", "doctors")
@require_role('admin')
def register_doctor_route():
    return admin_controller.register_doctor()

@api_bp.route('/admin/users/<string:email>', methods=['DELETE'])
@jwt_required()
@audit_log("ADMIN_DELETE_ACCOUNT", "users")
@require_role('admin')
def admin_delete_user_route(email):
    return admin_controller.delete_user(email)
