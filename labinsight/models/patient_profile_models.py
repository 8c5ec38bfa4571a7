from datetime import datetime
from labinsight.extensions import db

# API field name -> column name
PROFILE_FIELDS = {
    'name': 'name',
    'phone': 'phone',
    'dateOfBirth': 'date_of_birth',
    'age': 'age',
    'gender': 'gender',
    'bloodType': 'blood_type',
    'height': 'height',
    'weight': 'weight',
    'address': 'address',
    'medicalConditions': 'medical_conditions',
    'allergies': 'allergies',
    'medications': 'medications',
    'unitPreference': 'unit_preference',
}

LIST_FIELDS = ('medical_conditions', 'allergies', 'medications')
UNIT_PREFERENCES = ('metric', 'imperial')


class PatientProfile(db.Model):
    """Medical profile created alongside every patient account."""
    __tablename__ = 'patient_profiles'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # --- Personal Information ---
    name = db.Column(db.String(255), default='')
    phone = db.Column(db.String(50), default='')
    date_of_birth = db.Column(db.String(50), default='')
    age = db.Column(db.String(10), default='')
    gender = db.Column(db.String(50), default='')
    address = db.Column(db.String(1024), default='')

    # --- Vitals ---
    blood_type = db.Column(db.String(10), default='')
    height = db.Column(db.String(20), default='')
    weight = db.Column(db.String(20), default='')

    # --- Medical History ---
    medical_conditions = db.Column(db.JSON, default=list)
    allergies = db.Column(db.JSON, default=list)
    medications = db.Column(db.JSON, default=list)

    unit_preference = db.Column(db.String(20), default='metric')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def blank(cls, email, name=''):
        """An empty profile, as created at signup."""
        return cls(
            email=email,
            name=name or '',
            medical_conditions=[],
            allergies=[],
            medications=[],
            unit_preference='metric',
        )

    def to_dict(self):
        data = {'email': self.email}
        for api_name, column in PROFILE_FIELDS.items():
            value = getattr(self, column)
            if column in LIST_FIELDS:
                value = value or []
            data[api_name] = value if value is not None else ''
        return data
