import os

os.environ.setdefault("MEDIVAULT_STORE", "memory")

import pytest
from fastapi.testclient import TestClient

from auth import AuthService, SessionContext
from database import LocalStore, MemoryBackend
from records import RecordService
from schemas import DoctorCreate, PatientCreate


@pytest.fixture
def store():
    return LocalStore(MemoryBackend())


@pytest.fixture
def session(store):
    return SessionContext(store)


@pytest.fixture
def auth(store, session):
    return AuthService(store, session)


@pytest.fixture
def records(store):
    return RecordService(store)


@pytest.fixture
def patient_data():
    return PatientCreate(
        name="Asha Rao",
        email="a@x.com",
        phone="5551234567",
        password="secret1",
        dateOfBirth="1990-04-12",
        age=34,
        place="Springfield",
        bloodGroup="O+",
    )


@pytest.fixture
def doctor_data():
    return DoctorCreate(
        name="Dr. Lee",
        uid="MD123456",
        email="lee@clinic.org",
        password="secret1",
        dateOfBirth="1980-01-01",
        place="Springfield",
        hospitalName="City General",
        speciality="Cardiology",
    )


@pytest.fixture
def client(auth, records):
    import main

    main.app.dependency_overrides[main.get_auth_service] = lambda: auth
    main.app.dependency_overrides[main.get_record_service] = lambda: records
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()
