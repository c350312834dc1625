import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from database import LocalStore
from schemas import (
    AuthError, AuthResult, Doctor, DoctorCreate, Patient, PatientCreate,
    dump_record, user_adapter,
)

logger = logging.getLogger(__name__)

User = Union[Patient, Doctor]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class SessionContext:
    """The single signed-in identity, backed by the store's session key.

    ``restore`` is called once at startup; ``end`` is the logout teardown.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def restore(self) -> Optional[User]:
        raw = self.store.get_session()
        if raw is None:
            return None
        try:
            user = user_adapter.validate_python(raw)
        except ValidationError:
            logger.warning("Stored session is not a valid user record; clearing it")
            self.store.clear_session()
            return None
        # The pointer must resolve to a record that still exists.
        known = {u.get("id") for u in self.store.load("users")}
        if user.id not in known:
            logger.warning("Stored session references unknown user %s; clearing it", user.id)
            self.store.clear_session()
            return None
        return user

    def current(self) -> Optional[User]:
        raw = self.store.get_session()
        if raw is None:
            return None
        try:
            return user_adapter.validate_python(raw)
        except ValidationError:
            return None

    def begin(self, user: User) -> None:
        self.store.set_session(dump_record(user))

    def end(self) -> None:
        self.store.clear_session()


class AuthService:
    def __init__(self, store: LocalStore, session: SessionContext) -> None:
        self.store = store
        self.session = session

    # Users collection

    def get_users(self) -> List[User]:
        users: List[User] = []
        for raw in self.store.load("users"):
            try:
                users.append(user_adapter.validate_python(raw))
            except ValidationError:
                logger.warning("Skipping malformed user record %r", raw.get("id"))
        return users

    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.get_users() if u.id == user_id), None)

    # Registration
    # Duplicate checks and appends work on the raw stored dicts so records
    # that no longer validate still count and are never dropped on save.

    def register_patient(self, data: PatientCreate) -> AuthResult:
        raw_users = self.store.load("users")

        # Email is unique across all users, phone only among patients
        for u in raw_users:
            if u.get("email") == data.email or (u.get("type") == "patient" and u.get("phone") == data.phone):
                return AuthResult(
                    success=False,
                    message="Email or phone number already registered",
                    error=AuthError.DUPLICATE_IDENTITY,
                )

        patient = Patient(
            id=_new_id(),
            createdAt=_now_iso(),
            **data.model_dump(exclude={"password"}),
        )
        raw_users.append(dump_record(patient))
        self.store.save("users", raw_users)
        logger.info("Registered patient %s", patient.id)
        return AuthResult(success=True, message="Registration successful", user=patient)

    def register_doctor(self, data: DoctorCreate) -> AuthResult:
        raw_users = self.store.load("users")

        for u in raw_users:
            if u.get("email") == data.email or (u.get("type") == "doctor" and u.get("uid") == data.uid):
                return AuthResult(
                    success=False,
                    message="Email or UID already registered",
                    error=AuthError.DUPLICATE_IDENTITY,
                )

        doctor = Doctor(
            id=_new_id(),
            createdAt=_now_iso(),
            **data.model_dump(exclude={"password"}),
        )
        raw_users.append(dump_record(doctor))
        self.store.save("users", raw_users)
        logger.info("Registered doctor %s", doctor.id)
        return AuthResult(success=True, message="Registration successful", user=doctor)

    # Login
    # Passwords are accepted as supplied and never checked; a user is
    # authenticated by identifier match alone.

    def login_patient(self, identifier: str, password: str) -> AuthResult:
        user = next(
            (u for u in self.get_users()
             if u.type == "patient" and (u.email == identifier or u.phone == identifier)),
            None,
        )
        if user is None:
            return AuthResult(success=False, message="User not found", error=AuthError.NOT_FOUND)
        return AuthResult(success=True, message="Login successful", user=user)

    def login_doctor(self, uid: str, password: str) -> AuthResult:
        user = next((u for u in self.get_users() if u.type == "doctor" and u.uid == uid), None)
        if user is None:
            return AuthResult(success=False, message="Doctor not found", error=AuthError.NOT_FOUND)
        return AuthResult(success=True, message="Login successful", user=user)

    # Profile updates

    def update_patient(self, patient_id: str, updates: Dict[str, Any]) -> AuthResult:
        raw_users = self.store.load("users")
        index = next((i for i, u in enumerate(raw_users) if u.get("id") == patient_id), None)
        if index is None:
            return AuthResult(success=False, message="Patient not found", error=AuthError.NOT_FOUND)

        try:
            updated = user_adapter.validate_python({**raw_users[index], **updates})
        except ValidationError as e:
            logger.warning("Rejected profile update for %s: %d invalid field(s)", patient_id, e.error_count())
            return AuthResult(success=False, message="Invalid profile data", error=AuthError.INVALID_RECORD)
        raw_users[index] = dump_record(updated)
        self.store.save("users", raw_users)

        current = self.session.current()
        if current is not None and current.id == patient_id:
            self.session.begin(updated)

        return AuthResult(success=True, message="Profile updated successfully", user=updated)

    # Session pass-throughs

    def get_current_user(self) -> Optional[User]:
        return self.session.current()

    def set_current_user(self, user: User) -> None:
        self.session.begin(user)

    def logout(self) -> None:
        self.session.end()
