"""
Shared fixtures: a testing app on in-memory SQLite, its client, and user factories.
"""

import contextlib
from types import SimpleNamespace

import pytest
from flask import has_app_context

from labinsight import create_app
from labinsight.extensions import db
from labinsight.models import User, DoctorProfile, PatientProfile
from labinsight.services.auth_service import issue_token

PASSWORD = 'Passw0rd!'


@pytest.fixture
def app(tmp_path):
    """Application fixture with a fresh schema and a private upload folder."""
    app = create_app('testing')
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client fixture."""
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Runs the test body inside an application context, for service-level tests."""
    with app.app_context():
        yield app


@pytest.fixture
def make_user(app):
    """Factory creating a user (plus its profile) and a bearer token for it."""

    def _make_user(email, role='patient', name=None, password=PASSWORD, auth_provider='local', **profile):
        scope = contextlib.nullcontext() if has_app_context() else app.app_context()
        with scope:
            user = User(name=name or email.split('@')[0].title(), email=email, role=role,
                        auth_provider=auth_provider)
            if auth_provider == 'local':
                user.set_password(password)
            db.session.add(user)
            if role == 'patient':
                db.session.add(PatientProfile.blank(email, user.name))
            elif role == 'doctor':
                db.session.add(DoctorProfile(user_email=email, **profile))
            db.session.commit()

            token = issue_token(user.id, user.email, user.role)
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                name=user.name,
                role=user.role,
                password=password,
                token=token,
                headers={'Authorization': f'Bearer {token}'},
            )

    return _make_user


@pytest.fixture
def patient(make_user):
    return make_user('p@x.com', name='Pat Patient')


@pytest.fixture
def doctor(make_user):
    return make_user(
        'd@x.com', role='doctor', name='Dr. Dana',
        specialization='Hematology', phone='555-0100', experience_years=12,
        education='MD', availability='Weekdays',
    )


@pytest.fixture
def admin(make_user):
    return make_user('admin@x.com', role='admin', name='Ada Admin')
