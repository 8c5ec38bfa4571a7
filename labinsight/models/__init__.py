from labinsight.models.user_models import User, DoctorProfile, ROLES
from labinsight.models.patient_profile_models import PatientProfile
from labinsight.models.report_models import Report
from labinsight.models.connection_models import ConnectionRequest, AssignedDoctor

__all__ = [
    'User', 'DoctorProfile', 'ROLES', 'PatientProfile', 'Report',
    'ConnectionRequest', 'AssignedDoctor',
]
