from datetime import datetime, timedelta
from labinsight.extensions import db, bcrypt
from labinsight.utils.errors import ValidationError

ROLES = ('patient', 'doctor', 'admin')
AUTH_PROVIDERS = ('local', 'google')

MAX_FAILED_LOGINS = 5
LOCKOUT_PERIOD = timedelta(minutes=30)


class User(db.Model):
    """Identity record for patients, doctors and admins."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, default='')
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    # Null for accounts provisioned by an external identity provider
    password_hash = db.Column(db.String(255))
    role = db.Column(db.String(20), nullable=False, default='patient')
    auth_provider = db.Column(db.String(20), nullable=False, default='local')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    failed_login_attempts = db.Column(db.Integer, default=0)
    account_locked_until = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime, default=datetime.utcnow)

    @staticmethod
    def normalize_email(value):
        """Emails are stored and compared lower-cased and stripped."""
        if value is None:
            return ''
        if not isinstance(value, str):
            raise ValidationError('Email must be a string')
        return value.strip().lower()

    @classmethod
    def find_by_email(cls, email):
        return cls.query.filter_by(email=cls.normalize_email(email)).first()

    @property
    def is_external(self):
        return self.auth_provider != 'local'

    def set_password(self, password: str) -> None:
        """Hashes and sets the user's password, enforcing complexity rules."""
        if not self._validate_password_strength(password):
            raise ValueError("Password must be at least 8 characters and contain a letter and a digit")
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        self.password_changed_at = datetime.utcnow()

    def is_locked(self) -> bool:
        return bool(self.account_locked_until and datetime.utcnow() < self.account_locked_until)

    def check_password(self, password: str) -> bool:
        """Checks a password and handles login attempt logic."""
        if self.is_locked() or not self.password_hash or not password:
            return False
        if self.account_locked_until:
            self.account_locked_until = None
            self.failed_login_attempts = 0

        is_valid = bcrypt.check_password_hash(self.password_hash, password)

        if not is_valid:
            self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
            if self.failed_login_attempts >= MAX_FAILED_LOGINS:
                self.account_locked_until = datetime.utcnow() + LOCKOUT_PERIOD
        else:
            self.failed_login_attempts = 0
            self.last_login = datetime.utcnow()

        db.session.commit()
        return is_valid

    def to_dict(self):
        """Serializes the User object to a dictionary for API responses."""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'auth_provider': self.auth_provider,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def _validate_password_strength(password: str) -> bool:
        return (isinstance(password, str) and len(password) >= 8 and
                any(c.isalpha() for c in password) and
                any(c.isdigit() for c in password))

    def __repr__(self):
        return f'<User {self.id}: {self.email} ({self.role})>'


class DoctorProfile(db.Model):
    """Model for storing doctor-specific profile information."""
    __tablename__ = 'doctor_profiles'

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    specialization = db.Column(db.String(100))
    phone = db.Column(db.String(50))
    experience_years = db.Column(db.Integer)
    education = db.Column(db.String(255))
    license_number = db.Column(db.String(100))
    availability = db.Column(db.String(100))
    certifications = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
