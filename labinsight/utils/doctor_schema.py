# /labinsight/utils/doctor_schema.py
import logging

logger = logging.getLogger(__name__)

# Every field a doctor card exposes, with the value used when the record lacks it
DOCTOR_FIELD_DEFAULTS = {
    'specialization': 'General Practice',
    'phone': 'Not provided',
    'experience_years': None,
    'education': 'MBBS',
    'license_number': None,
    'availability': 'Available',
    'certifications': [],
}

# Fields whose absence is expected and not worth a warning
OPTIONAL_DOCTOR_FIELDS = {'license_number', 'certifications'}


def serialize_doctor(user, profile=None, patients_count=0):
    """Builds the doctor view from a ``User`` and its ``DoctorProfile``.

    Missing profile fields are filled from ``DOCTOR_FIELD_DEFAULTS`` and
    reported as validation warnings rather than silently coerced.
    """
    data = {
        'id': user.email,
        'name': user.name or 'Doctor',
        'email': user.email,
        'patientsCount': patients_count,
    }

    missing = []
    for field, default in DOCTOR_FIELD_DEFAULTS.items():
        value = getattr(profile, field, None) if profile is not None else None
        if value is None or value == '':
            if field not in OPTIONAL_DOCTOR_FIELDS:
                missing.append(field)
            value = list(default) if isinstance(default, list) else default
        data[field] = value

    if missing:
        logger.warning("Doctor %s profile is missing fields %s; defaults applied", user.email, ', '.join(missing))

    years = data.pop('experience_years')
    data['experience'] = f"{years} years" if years is not None else None
    data['licenseNumber'] = data.pop('license_number')
    return data
