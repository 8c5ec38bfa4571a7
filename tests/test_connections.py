"""
Test the patient/doctor connection workflow.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from labinsight.extensions import db
from labinsight.models import ConnectionRequest, AssignedDoctor
from labinsight.models.connection_models import PENDING, ACCEPTED, REJECTED
from labinsight.services import connection_service
from labinsight.utils.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError


def _assignments(patient_email):
    return AssignedDoctor.query.filter_by(user_email=patient_email).all()


def test_submit_then_accept_assigns_doctor(ctx, patient, doctor):
    request = connection_service.submit_request('p@x.com', 'd@x.com', 'please review')
    assert request.status == PENDING
    assert request.message == 'please review'

    resolved = connection_service.resolve_request(request.id, 'accept', 'd@x.com')
    assert resolved.status == ACCEPTED
    assert resolved.resolved_at is not None

    assignments = _assignments('p@x.com')
    assert len(assignments) == 1
    assert assignments[0].doctor_email == 'd@x.com'
    assert assignments[0].request_id == request.id


def test_second_pending_request_conflicts(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    connection_service.submit_request('p@x.com', 'd@x.com')

    with pytest.raises(Conflict):
        connection_service.submit_request('p@x.com', 'd2@x.com')

    assert ConnectionRequest.query.filter_by(patient_email='p@x.com').count() == 1


def test_pending_index_guards_storage(ctx, patient, doctor):
    db.session.add(ConnectionRequest(patient_email='p@x.com', doctor_email='d@x.com', status=PENDING))
    db.session.commit()

    db.session.add(ConnectionRequest(patient_email='p@x.com', doctor_email='d@x.com', status=PENDING))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    # Resolved rows are not constrained
    db.session.add(ConnectionRequest(patient_email='p@x.com', doctor_email='d@x.com', status=REJECTED))
    db.session.commit()


def test_submit_while_assigned_conflicts(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    request = connection_service.submit_request('p@x.com', 'd@x.com')
    connection_service.resolve_request(request.id, 'accept', 'd@x.com')

    with pytest.raises(Conflict):
        connection_service.submit_request('p@x.com', 'd2@x.com')


def test_submit_validation(ctx, patient, doctor):
    with pytest.raises(ValidationError):
        connection_service.submit_request('p@x.com', '')
    with pytest.raises(NotFound):
        connection_service.submit_request('p@x.com', 'nobody@x.com')
    # Only doctors can receive requests
    with pytest.raises(NotFound):
        connection_service.submit_request('p@x.com', 'p@x.com')
    with pytest.raises(ValidationError):
        connection_service.submit_request(
            'p@x.com', 'd@x.com', 'x' * (connection_service.MAX_MESSAGE_LENGTH + 1))


def test_resolving_missing_or_resolved_request(ctx, patient, doctor):
    with pytest.raises(NotFound):
        connection_service.resolve_request(9999, 'accept', 'd@x.com')

    request = connection_service.submit_request('p@x.com', 'd@x.com')
    request_id = request.id
    connection_service.resolve_request(request_id, 'accept', 'd@x.com')

    with pytest.raises(InvalidState):
        connection_service.resolve_request(request_id, 'reject', 'd@x.com')

    assert db.session.get(ConnectionRequest, request_id).status == ACCEPTED
    assert len(_assignments('p@x.com')) == 1


def test_unknown_decision_is_rejected(ctx, patient, doctor):
    request = connection_service.submit_request('p@x.com', 'd@x.com')
    with pytest.raises(ValidationError):
        connection_service.resolve_request(request.id, 'maybe', 'd@x.com')
    assert db.session.get(ConnectionRequest, request.id).status == PENDING


def test_other_doctor_cannot_resolve(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    request = connection_service.submit_request('p@x.com', 'd@x.com')

    with pytest.raises(Forbidden):
        connection_service.resolve_request(request.id, 'accept', 'd2@x.com')

    assert db.session.get(ConnectionRequest, request.id).status == PENDING
    assert _assignments('p@x.com') == []


def test_reject_records_message_and_allows_new_request(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    request = connection_service.submit_request('p@x.com', 'd@x.com')
    resolved = connection_service.resolve_request(request.id, 'reject', 'd@x.com', '  Not taking new patients ')

    assert resolved.status == REJECTED
    assert resolved.rejection_message == 'Not taking new patients'
    assert _assignments('p@x.com') == []

    status = connection_service.get_connection_status('p@x.com')
    assert status['status'] == REJECTED
    assert status['rejectionMessage'] == 'Not taking new patients'

    again = connection_service.submit_request('p@x.com', 'd2@x.com')
    assert again.status == PENDING


def test_accept_leaves_no_pending_request_for_patient(ctx, patient, doctor):
    request = connection_service.submit_request('p@x.com', 'd@x.com')
    connection_service.resolve_request(request.id, 'accept', 'd@x.com')

    assert ConnectionRequest.query.filter_by(patient_email='p@x.com', status=PENDING).count() == 0


def test_accept_conflicts_with_assignment_to_other_doctor(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    db.session.add(AssignedDoctor(user_email='p@x.com', doctor_email='d2@x.com'))
    db.session.add(ConnectionRequest(patient_email='p@x.com', doctor_email='d@x.com', status=PENDING))
    db.session.commit()
    request_id = ConnectionRequest.query.filter_by(patient_email='p@x.com').one().id

    with pytest.raises(Conflict):
        connection_service.resolve_request(request_id, 'accept', 'd@x.com')

    assert db.session.get(ConnectionRequest, request_id).status == PENDING
    assignments = _assignments('p@x.com')
    assert len(assignments) == 1
    assert assignments[0].doctor_email == 'd2@x.com'


def test_at_most_one_assignment_across_operations(ctx, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')

    first = connection_service.submit_request('p@x.com', 'd@x.com')
    connection_service.resolve_request(first.id, 'reject', 'd@x.com')
    second = connection_service.submit_request('p@x.com', 'd2@x.com')
    connection_service.resolve_request(second.id, 'accept', 'd2@x.com')
    assert len(_assignments('p@x.com')) == 1

    connection_service.release_patient('d2@x.com', 'p@x.com')
    assert _assignments('p@x.com') == []

    third = connection_service.submit_request('p@x.com', 'd@x.com')
    connection_service.resolve_request(third.id, 'accept', 'd@x.com')
    assignments = _assignments('p@x.com')
    assert len(assignments) == 1
    assert assignments[0].doctor_email == 'd@x.com'


def test_connection_status_views(ctx, patient, doctor):
    assert connection_service.get_connection_status('p@x.com') == {'hasRequest': False}

    request = connection_service.submit_request('p@x.com', 'd@x.com')
    status = connection_service.get_connection_status('p@x.com')
    assert status['hasRequest'] is True
    assert status['status'] == PENDING
    assert status['doctorName'] == 'Dr. Dana'

    connection_service.resolve_request(request.id, 'accept', 'd@x.com')
    status = connection_service.get_connection_status('p@x.com')
    assert status['status'] == ACCEPTED
    assert status['doctorEmail'] == 'd@x.com'

    connection_service.release_patient('d@x.com', 'p@x.com')
    assert connection_service.get_connection_status('p@x.com') == {'hasRequest': False}


def test_release_requires_assignment(ctx, patient, doctor):
    with pytest.raises(NotFound):
        connection_service.release_patient('d@x.com', 'p@x.com')


def test_assigned_doctor_and_patient_listings(ctx, patient, doctor):
    assert connection_service.get_assigned_doctor('p@x.com') is None

    request = connection_service.submit_request('p@x.com', 'd@x.com', 'hello')
    pending = connection_service.list_doctor_requests('d@x.com', PENDING)
    assert [r['id'] for r in pending] == [request.id]
    assert pending[0]['patientName'] == 'Pat Patient'

    connection_service.resolve_request(request.id, 'accept', 'd@x.com')
    assert connection_service.list_doctor_requests('d@x.com', PENDING) == []

    view = connection_service.get_assigned_doctor('p@x.com')
    assert view['email'] == 'd@x.com'
    assert view['specialization'] == 'Hematology'
    assert view['experience'] == '12 years'
    assert view['patientsCount'] == 1
    assert view['assignedDate']

    patients = connection_service.list_assigned_patients('d@x.com')
    assert [p['email'] for p in patients] == ['p@x.com']

    with pytest.raises(ValidationError):
        connection_service.list_doctor_requests('d@x.com', 'bogus')


# --- HTTP surface ---

def test_request_flow_over_http(client, patient, doctor):
    response = client.post('/api/send-request', headers=patient.headers,
                           json={'doctorEmail': doctor.email, 'message': 'please review'})
    assert response.status_code == 201
    request_id = response.get_json()['request']['id']

    response = client.post('/api/send-request', headers=patient.headers, json={'doctorEmail': doctor.email})
    assert response.status_code == 409

    response = client.get('/api/doctor/requests?status=pending', headers=doctor.headers)
    assert response.status_code == 200
    assert response.get_json()['count'] == 1

    response = client.post(f'/api/doctor/requests/{request_id}/accept', headers=doctor.headers)
    assert response.status_code == 200
    assert response.get_json()['request']['status'] == ACCEPTED

    response = client.post(f'/api/doctor/requests/{request_id}/reject', headers=doctor.headers)
    assert response.status_code == 409
    assert response.get_json()['code'] == 'INVALID_STATE'

    response = client.get(f'/api/assigned-doctor/{patient.email}', headers=patient.headers)
    assert response.get_json()['doctor']['email'] == doctor.email

    response = client.get('/api/doctor/patients', headers=doctor.headers)
    assert response.get_json()['count'] == 1

    response = client.delete(f'/api/doctor/patients/{patient.email}', headers=doctor.headers)
    assert response.status_code == 200

    response = client.get(f'/api/patient/connection-status/{patient.email}', headers=patient.headers)
    assert response.get_json() == {'hasRequest': False}


def test_connection_routes_are_role_gated(client, make_user, patient, doctor):
    other = make_user('other@x.com')

    response = client.post('/api/send-request', headers=doctor.headers, json={'doctorEmail': doctor.email})
    assert response.status_code == 403

    response = client.get('/api/doctor/requests', headers=patient.headers)
    assert response.status_code == 403

    response = client.post('/api/send-request', headers=patient.headers,
                           json={'doctorEmail': doctor.email, 'patientEmail': other.email})
    assert response.status_code == 403

    response = client.get(f'/api/patient/connection-status/{patient.email}', headers=other.headers)
    assert response.status_code == 403

    # Doctors only see patients assigned to them
    response = client.get(f'/api/patient/connection-status/{patient.email}', headers=doctor.headers)
    assert response.status_code == 403

    response = client.post('/api/doctor/requests/9999/accept', headers=doctor.headers)
    assert response.status_code == 404


def test_accept_losing_assignment_race_conflicts(ctx, monkeypatch, make_user, patient, doctor):
    make_user('d2@x.com', role='doctor')
    db.session.add(ConnectionRequest(patient_email='p@x.com', doctor_email='d@x.com', status=PENDING))
    # Committed by a competing acceptance
    db.session.add(AssignedDoctor(user_email='p@x.com', doctor_email='d2@x.com'))
    db.session.commit()
    request_id = ConnectionRequest.query.filter_by(patient_email='p@x.com').one().id

    class AssignmentNotYetVisible:
        """Lookup taken before the competing assignment was committed."""

        def filter_by(self, **kwargs):
            return self

        def first(self):
            return None

    monkeypatch.setattr(AssignedDoctor, 'query', AssignmentNotYetVisible())

    with pytest.raises(Conflict):
        connection_service.resolve_request(request_id, 'accept', 'd@x.com')

    monkeypatch.undo()
    assert db.session.get(ConnectionRequest, request_id).status == PENDING
    assignments = _assignments('p@x.com')
    assert len(assignments) == 1
    assert assignments[0].doctor_email == 'd2@x.com'


def test_non_string_fields_are_rejected(ctx, patient, doctor):
    with pytest.raises(ValidationError):
        connection_service.submit_request('p@x.com', 'd@x.com', 123)
    with pytest.raises(ValidationError):
        connection_service.submit_request('p@x.com', ['d@x.com'])

    request = connection_service.submit_request('p@x.com', 'd@x.com')
    with pytest.raises(ValidationError):
        connection_service.resolve_request(request.id, 'reject', 'd@x.com', {'reason': 'busy'})
    assert db.session.get(ConnectionRequest, request.id).status == PENDING


def test_malformed_bodies_get_validation_errors_over_http(client, patient, doctor):
    response = client.post('/api/send-request', headers=patient.headers,
                           json={'doctorEmail': doctor.email, 'message': 123})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'

    response = client.post('/api/send-request', headers=patient.headers, json={'doctorEmail': 7})
    assert response.status_code == 400

    request_id = client.post('/api/send-request', headers=patient.headers,
                             json={'doctorEmail': doctor.email}).get_json()['request']['id']
    response = client.post(f'/api/doctor/requests/{request_id}/reject', headers=doctor.headers,
                           json={'rejectionMessage': ['busy']})
    assert response.status_code == 400
