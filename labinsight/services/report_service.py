# /labinsight/services/report_service.py
import os
import uuid
from datetime import datetime

from flask import current_app
from werkzeug.utils import secure_filename

from labinsight.extensions import db
from labinsight.models.user_models import User
from labinsight.models.report_models import Report, DEGRADED_SUMMARY
from labinsight.models.connection_models import AssignedDoctor
from labinsight.utils.ai_client import analysis_client
from labinsight.utils.validators import string_field
from labinsight.utils.errors import Forbidden, NotFound, UpstreamUnavailable, ValidationError


def _get_file_extension(filename):
    if not filename or '.' not in filename:
        return None
    return filename.rsplit('.', 1)[1].lower()


def _remove_file(path):
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as e:
        current_app.logger.error(f"Could not remove report file {path}: {e}")


def store_report(owner_email, uploaded_file):
    """Saves an upload to disk, asks the AI service for a summary and records it.

    The AI call never fails the upload: when the service is unavailable the
    report is stored with ``DEGRADED_SUMMARY``.
    """
    if uploaded_file is None or not uploaded_file.filename:
        raise ValidationError('No file uploaded')

    allowed = current_app.config['ALLOWED_REPORT_EXTENSIONS']
    if _get_file_extension(uploaded_file.filename) not in allowed:
        raise ValidationError('Invalid file type. Only PDF and images allowed.')

    file_name = secure_filename(uploaded_file.filename) or 'report'
    file_id = str(uuid.uuid4())
    upload_folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(upload_folder, exist_ok=True)
    file_path = os.path.join(upload_folder, f"{file_id}_{file_name}")
    uploaded_file.save(file_path)

    try:
        analysis = analysis_client.analyze(file_path, file_name)
    except UpstreamUnavailable as e:
        current_app.logger.warning(f"Storing report {file_id} without AI analysis: {e.message}")
        analysis = {'ai_summary': dict(DEGRADED_SUMMARY), 'testResults': [], 'embedding_path': ''}

    report = Report(
        file_id=file_id,
        user_email=User.normalize_email(owner_email),
        file_name=file_name,
        file_path=file_path,
        embedding_path=analysis['embedding_path'],
        ai_summary=analysis['ai_summary'],
        test_results=analysis['testResults'],
        uploaded_at=datetime.utcnow(),
    )
    try:
        db.session.add(report)
        db.session.commit()
    except Exception:
        db.session.rollback()
        # Clean up saved file if database save fails
        _remove_file(file_path)
        raise

    current_app.logger.info(f"Report {file_id} stored for {report.user_email}")
    return report


def get_report(file_id):
    report = Report.query.filter_by(file_id=file_id).first()
    if report is None:
        raise NotFound('Report not found')
    return report


def _reports_for(email):
    return (Report.query
            .filter_by(user_email=User.normalize_email(email))
            .order_by(Report.uploaded_at.desc(), Report.id.desc())
            .all())


def list_reports(email):
    """Summary view of every report of ``email``, newest first."""
    return [r.to_summary_dict() for r in _reports_for(email)]


def list_full_reports(email):
    return [r.to_dict() for r in _reports_for(email)]


def latest_report(email):
    report = (Report.query
              .filter_by(user_email=User.normalize_email(email))
              .order_by(Report.uploaded_at.desc(), Report.id.desc())
              .first())
    if report is None:
        raise NotFound('No reports found')
    return report


def report_file_path(report):
    """Absolute path of the stored file; NotFound when it is gone from disk."""
    path = os.path.abspath(report.file_path)
    if not os.path.isfile(path):
        raise NotFound('File not found on server')
    return path


def add_doctor_comment(file_id, doctor_email, comment):
    comment = string_field(comment, 'comment')
    if not comment:
        raise ValidationError('Comment is required')

    report = get_report(file_id)
    assigned = AssignedDoctor.query.filter_by(
        user_email=report.user_email, doctor_email=User.normalize_email(doctor_email)
    ).first()
    if not assigned:
        raise Forbidden('Patient not assigned to you')

    report.doctor_comment = comment
    report.comment_date = datetime.utcnow()
    report.commented_by = assigned.doctor_email
    db.session.commit()
    return report


def delete_report(file_id):
    report = get_report(file_id)
    file_path = report.file_path
    db.session.delete(report)
    db.session.commit()
    _remove_file(file_path)
