# /labinsight/services/account_service.py
"""Account deletion.

Removing an account runs a fixed list of cascade steps, each committed on its
own and allowed to fail, then deletes the user row. Only a failure of that
last delete fails the operation.
"""
import logging
import os
from collections import namedtuple

from flask import current_app
from sqlalchemy import or_

from labinsight.extensions import db
from labinsight.models.user_models import User, DoctorProfile
from labinsight.models.patient_profile_models import PatientProfile
from labinsight.models.report_models import Report
from labinsight.models.connection_models import ConnectionRequest, AssignedDoctor
from labinsight.utils.validators import string_field
from labinsight.utils.errors import AccountLocked, Forbidden, NotFound, Unauthenticated, ValidationError

audit_logger = logging.getLogger('LABINSIGHT_AUDIT')

StepOutcome = namedtuple('StepOutcome', ['step', 'ok', 'count'])


def _delete_patient_profile(email, context):
    return PatientProfile.query.filter_by(email=email).delete(synchronize_session=False)


def _delete_doctor_profile(email, context):
    return DoctorProfile.query.filter_by(user_email=email).delete(synchronize_session=False)


def _delete_reports(email, context):
    context['report_files'] = [
        path for (path,) in db.session.query(Report.file_path).filter_by(user_email=email).all()
    ]
    return Report.query.filter_by(user_email=email).delete(synchronize_session=False)


def _delete_report_files(email, context):
    """Removes files whose report rows are gone."""
    removed = 0
    for path in context.get('report_files', []):
        if Report.query.filter_by(file_path=path).first() is not None:
            continue
        if path and os.path.exists(path):
            os.remove(path)
            removed += 1
    return removed


def _delete_assignments(email, context):
    return AssignedDoctor.query.filter(
        or_(AssignedDoctor.user_email == email, AssignedDoctor.doctor_email == email)
    ).delete(synchronize_session=False)


def _delete_connection_requests(email, context):
    return ConnectionRequest.query.filter(
        or_(ConnectionRequest.patient_email == email, ConnectionRequest.doctor_email == email)
    ).delete(synchronize_session=False)


def cascade_steps():
    """Every entity that references an account, in deletion order."""
    return [
        ('patient_profile', _delete_patient_profile),
        ('doctor_profile', _delete_doctor_profile),
        ('reports', _delete_reports),
        ('report_files', _delete_report_files),
        ('assignments', _delete_assignments),
        ('connection_requests', _delete_connection_requests),
    ]


def purge_account(user):
    """Runs every cascade step, then deletes ``user``. Returns the step outcomes."""
    email = user.email
    user_id = user.id
    context = {}

    outcomes = []
    for name, step in cascade_steps():
        try:
            count = step(email, context) or 0
            db.session.commit()
        except Exception as e:
            # Best effort: log and carry on with the next step
            db.session.rollback()
            outcomes.append(StepOutcome(name, False, 0))
            audit_logger.error(f"Action='ACCOUNT_DELETION', Step='{name}', UserID='{user_id}', Error='{e}'")
            current_app.logger.exception(f"Cascade step '{name}' failed for user {user_id}")
            continue
        outcomes.append(StepOutcome(name, True, count))
        audit_logger.info(f"Action='ACCOUNT_DELETION', Step='{name}', UserID='{user_id}', Deleted='{count}'")

    # The only step allowed to fail the whole operation
    User.query.filter_by(id=user_id).delete(synchronize_session=False)
    db.session.commit()
    db.session.expunge_all()
    audit_logger.info(f"Action='ACCOUNT_DELETION', Step='user', UserID='{user_id}', Success='True'")
    return outcomes


def delete_account(email, supplied_password):
    """Self-service deletion: verifies the password of local accounts first."""
    user = User.find_by_email(email)
    if user is None:
        raise NotFound('User not found')

    if not user.is_external:
        supplied_password = string_field(supplied_password, 'password', strip=False)
        if not supplied_password:
            raise ValidationError('Password is required')
        if user.is_locked():
            raise AccountLocked()
        if not user.check_password(supplied_password):
            raise Unauthenticated('Incorrect password')

    return purge_account(user)


def admin_delete_account(acting_admin, email):
    if User.normalize_email(email) == acting_admin.email:
        raise Forbidden('Admins cannot delete their own account here')
    user = User.find_by_email(email)
    if user is None:
        raise NotFound('User not found')
    return purge_account(user)
