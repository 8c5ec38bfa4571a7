from datetime import datetime
from labinsight.extensions import db

PENDING = 'pending'
ACCEPTED = 'accepted'
REJECTED = 'rejected'
REQUEST_STATUSES = (PENDING, ACCEPTED, REJECTED)


class ConnectionRequest(db.Model):
    """A patient's request to be taken on by a specific doctor.

    ``pending`` moves to ``accepted`` or ``rejected``; both are terminal. A
    patient can hold at most one pending request, which the partial unique
    index enforces at the storage layer.
    """
    __tablename__ = 'connection_requests'

    id = db.Column(db.Integer, primary_key=True)
    patient_email = db.Column(db.String(255), nullable=False, index=True)
    doctor_email = db.Column(db.String(255), nullable=False, index=True)
    message = db.Column(db.Text, default='')
    request_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PENDING)
    rejection_message = db.Column(db.Text)
    resolved_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index(
            'uq_connection_requests_pending_patient', 'patient_email',
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'patientEmail': self.patient_email,
            'doctorEmail': self.doctor_email,
            'message': self.message or '',
            'requestDate': self.request_date.isoformat() if self.request_date else None,
            'status': self.status,
            'rejectionMessage': self.rejection_message,
            'resolvedAt': self.resolved_at.isoformat() if self.resolved_at else None,
        }

    def __repr__(self):
        return f'<ConnectionRequest {self.id}: {self.patient_email} -> {self.doctor_email} [{self.status}]>'


class AssignedDoctor(db.Model):
    """The accepted patient-doctor relationship, at most one per patient."""
    __tablename__ = 'assigned_doctors'

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    doctor_email = db.Column(db.String(255), nullable=False, index=True)
    assigned_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    request_id = db.Column(db.Integer)

    def __repr__(self):
        return f'<AssignedDoctor {self.user_email} -> {self.doctor_email}>'
