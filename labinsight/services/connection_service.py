# /labinsight/services/connection_service.py
"""Patient/doctor connection workflow.

Policy: a patient may hold a single pending request at a time (checked here
and backed by a partial unique index), and accepting a request also rejects
any other pending request of that patient, so no pending request survives
an assignment.
"""
import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from labinsight.extensions import db
from labinsight.models.user_models import User, DoctorProfile
from labinsight.models.connection_models import (
    ConnectionRequest, AssignedDoctor, PENDING, ACCEPTED, REJECTED, REQUEST_STATUSES
)
from labinsight.utils.doctor_schema import serialize_doctor
from labinsight.utils.validators import string_field
from labinsight.utils.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError

logger = logging.getLogger(__name__)

DECISIONS = {'accept': ACCEPTED, 'reject': REJECTED}
SUPERSEDED_MESSAGE = 'Another doctor accepted your connection request'
MAX_MESSAGE_LENGTH = 2000


def _get_doctor(doctor_email):
    doctor = User.find_by_email(doctor_email)
    if not doctor or doctor.role != 'doctor':
        raise NotFound('Doctor not found')
    return doctor


def _doctor_view(doctor):
    profile = DoctorProfile.query.filter_by(user_email=doctor.email).first()
    patients_count = AssignedDoctor.query.filter_by(doctor_email=doctor.email).count()
    return serialize_doctor(doctor, profile, patients_count)


def submit_request(patient_email, doctor_email, message=''):
    """Creates a pending request from a patient to a doctor."""
    patient_email = User.normalize_email(patient_email)
    doctor_email = User.normalize_email(doctor_email)
    if not doctor_email:
        raise ValidationError('doctorEmail is required')
    message = string_field(message, 'message')
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f'Message must be at most {MAX_MESSAGE_LENGTH} characters')

    doctor = _get_doctor(doctor_email)

    if AssignedDoctor.query.filter_by(user_email=patient_email).first():
        raise Conflict('You already have an assigned doctor')
    if ConnectionRequest.query.filter_by(patient_email=patient_email, status=PENDING).first():
        raise Conflict('You already have a pending connection request')

    connection_request = ConnectionRequest(
        patient_email=patient_email,
        doctor_email=doctor.email,
        message=message,
        request_date=datetime.utcnow(),
        status=PENDING,
    )
    db.session.add(connection_request)
    try:
        db.session.commit()
    except IntegrityError as e:
        # A concurrent submit won the partial unique index
        db.session.rollback()
        raise Conflict('You already have a pending connection request') from e

    logger.info("Connection request %s: %s -> %s", connection_request.id, patient_email, doctor.email)
    return connection_request


def resolve_request(request_id, decision, acting_doctor_email, rejection_message=None):
    """Accepts or rejects a pending request on behalf of its doctor."""
    new_status = DECISIONS.get(decision)
    if new_status is None:
        raise ValidationError("Decision must be 'accept' or 'reject'")

    connection_request = db.session.get(ConnectionRequest, request_id)
    if connection_request is None:
        raise NotFound('Connection request not found')
    if connection_request.doctor_email != User.normalize_email(acting_doctor_email):
        raise Forbidden('This request was sent to another doctor')
    if connection_request.status != PENDING:
        raise InvalidState(f'Connection request is already {connection_request.status}')

    now = datetime.utcnow()
    values = {'status': new_status, 'resolved_at': now}
    if new_status == REJECTED:
        values['rejection_message'] = string_field(rejection_message, 'rejectionMessage') or None

    # Conditional transition; a concurrent resolver leaves nothing to update
    result = db.session.execute(
        update(ConnectionRequest)
        .where(ConnectionRequest.id == request_id, ConnectionRequest.status == PENDING)
        .values(**values)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidState('Connection request is no longer pending')

    try:
        if new_status == ACCEPTED:
            _assign(connection_request, now)
        db.session.commit()
    except Conflict:
        db.session.rollback()
        raise
    except IntegrityError as e:
        # Lost the race on assigned_doctors.user_email
        db.session.rollback()
        raise Conflict('Patient was assigned to another doctor concurrently') from e

    db.session.refresh(connection_request)
    logger.info("Connection request %s %s by %s", request_id, new_status, connection_request.doctor_email)
    return connection_request


def _assign(connection_request, now):
    """Materializes the accepted relationship and retires sibling requests."""
    patient_email = connection_request.patient_email
    assignment = AssignedDoctor.query.filter_by(user_email=patient_email).first()
    if assignment is None:
        db.session.add(AssignedDoctor(
            user_email=patient_email,
            doctor_email=connection_request.doctor_email,
            assigned_date=now,
            request_id=connection_request.id,
        ))
    elif assignment.doctor_email == connection_request.doctor_email:
        # Stale row for the same doctor: refresh it in place
        assignment.assigned_date = now
        assignment.request_id = connection_request.id
    else:
        raise Conflict('Patient is already assigned to another doctor')

    db.session.execute(
        update(ConnectionRequest)
        .where(
            ConnectionRequest.patient_email == patient_email,
            ConnectionRequest.status == PENDING,
            ConnectionRequest.id != connection_request.id,
        )
        .values(status=REJECTED, rejection_message=SUPERSEDED_MESSAGE, resolved_at=now)
    )
    db.session.flush()


def get_connection_status(patient_email):
    """Single coherent view of where a patient stands with their doctor."""
    patient_email = User.normalize_email(patient_email)

    assignment = AssignedDoctor.query.filter_by(user_email=patient_email).first()
    if assignment:
        doctor = User.find_by_email(assignment.doctor_email)
        return {
            'hasRequest': True,
            'status': ACCEPTED,
            'doctorName': doctor.name if doctor else None,
            'doctorEmail': assignment.doctor_email,
            'rejectionMessage': None,
            'requestDate': assignment.assigned_date.isoformat() if assignment.assigned_date else None,
        }

    latest = (ConnectionRequest.query
              .filter_by(patient_email=patient_email)
              .order_by(ConnectionRequest.request_date.desc(), ConnectionRequest.id.desc())
              .first())
    # An accepted request without an assignment means the doctor released the patient
    if latest is None or latest.status == ACCEPTED:
        return {'hasRequest': False}

    doctor = User.find_by_email(latest.doctor_email)
    return {
        'hasRequest': True,
        'status': latest.status,
        'doctorName': doctor.name if doctor else None,
        'doctorEmail': latest.doctor_email,
        'rejectionMessage': latest.rejection_message,
        'requestDate': latest.request_date.isoformat() if latest.request_date else None,
    }


def get_assigned_doctor(patient_email):
    assignment = AssignedDoctor.query.filter_by(user_email=User.normalize_email(patient_email)).first()
    if assignment is None:
        return None
    doctor = User.find_by_email(assignment.doctor_email)
    if doctor is None:
        logger.warning("Assignment for %s points at missing doctor %s", assignment.user_email, assignment.doctor_email)
        return None
    view = _doctor_view(doctor)
    view['assignedDate'] = assignment.assigned_date.isoformat() if assignment.assigned_date else None
    return view


def list_doctors():
    doctors = User.query.filter_by(role='doctor').order_by(User.name).all()
    profiles = {p.user_email: p for p in DoctorProfile.query.all()}
    counts = dict(
        db.session.query(AssignedDoctor.doctor_email, func.count(AssignedDoctor.id))
        .group_by(AssignedDoctor.doctor_email)
        .all()
    )
    return [serialize_doctor(d, profiles.get(d.email), counts.get(d.email, 0)) for d in doctors]


def list_doctor_requests(doctor_email, status=None):
    if status and status not in REQUEST_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(REQUEST_STATUSES)}")
    query = ConnectionRequest.query.filter_by(doctor_email=User.normalize_email(doctor_email))
    if status:
        query = query.filter_by(status=status)
    rows = query.order_by(ConnectionRequest.request_date.desc()).all()

    names = {u.email: u.name for u in User.query.filter(
        User.email.in_({r.patient_email for r in rows})).all()} if rows else {}
    result = []
    for r in rows:
        item = r.to_dict()
        item['patientName'] = names.get(r.patient_email)
        result.append(item)
    return result


def list_assigned_patients(doctor_email):
    assignments = (AssignedDoctor.query
                   .filter_by(doctor_email=User.normalize_email(doctor_email))
                   .order_by(AssignedDoctor.assigned_date.desc())
                   .all())
    users = {u.email: u for u in User.query.filter(
        User.email.in_({a.user_email for a in assignments})).all()} if assignments else {}
    return [{
        'email': a.user_email,
        'name': users[a.user_email].name if a.user_email in users else None,
        'assignedDate': a.assigned_date.isoformat() if a.assigned_date else None,
    } for a in assignments]


def release_patient(doctor_email, patient_email):
    """Ends an assignment without deleting the patient."""
    assignment = AssignedDoctor.query.filter_by(
        user_email=User.normalize_email(patient_email),
        doctor_email=User.normalize_email(doctor_email),
    ).first()
    if assignment is None:
        raise NotFound('Patient not found or not assigned to you.')
    db.session.delete(assignment)
    db.session.commit()
    logger.info("Doctor %s released patient %s", assignment.doctor_email, assignment.user_email)
