import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Depends, status, UploadFile, File, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from auth import AuthService, SessionContext, User
from database import open_store
from records import RecordService
import assistant
from schemas import (
    AuthResult, AuthError, PatientCreate, DoctorCreate, PatientLogin, DoctorLogin,
    ProfileUpdate, HealthReport, BloodDonorEntry, DonorRegistration,
    ChatRequest, ChatMessage, OCRResult, Patient, Doctor, UserRecord,
)

load_dotenv()

# Config
STORE_BACKEND = os.getenv("MEDIVAULT_STORE", "file")
DATA_DIR = os.getenv("MEDIVAULT_DATA_DIR", os.path.join(os.path.abspath(os.path.dirname(__file__)), "instance"))
SHARE_SCHEME = os.getenv("MEDIVAULT_SHARE_SCHEME", "medivault")
SIMULATED_DELAY_SECONDS = float(os.getenv("SIMULATED_DELAY_SECONDS", "0"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")]

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="MediVault Health Records API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Store / session
# One session pointer per process: every HTTP client shares the signed-in
# user, so /auth/me and the role-gated routes act for whoever logged in last.
store = open_store(STORE_BACKEND, DATA_DIR)
session_context = SessionContext(store)
session_context.restore()


def get_auth_service() -> AuthService:
    return AuthService(store, session_context)


def get_record_service() -> RecordService:
    return RecordService(store, share_scheme=SHARE_SCHEME)


def get_current_user(auth: AuthService = Depends(get_auth_service)) -> User:
    user = auth.get_current_user()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return user


def get_current_patient(current: User = Depends(get_current_user)) -> Patient:
    if current.type != "patient":
        raise HTTPException(status_code=403, detail="Patient only")
    return current


def get_current_doctor(current: User = Depends(get_current_user)) -> Doctor:
    if current.type != "doctor":
        raise HTTPException(status_code=403, detail="Doctor only")
    return current


def _raise_for(result: AuthResult, not_found_status: int) -> None:
    if result.success:
        return
    if result.error == AuthError.DUPLICATE_IDENTITY:
        code = 400
    elif result.error == AuthError.INVALID_RECORD:
        code = 422
    else:
        code = not_found_status
    raise HTTPException(status_code=code, detail=result.message)


async def _simulated_latency() -> None:
    if SIMULATED_DELAY_SECONDS > 0:
        await asyncio.sleep(SIMULATED_DELAY_SECONDS)


# Routes
@app.get("/")
def root():
    return {"service": "MediVault Health Records API", "status": "ok"}


@app.get("/test")
def test_store(auth: AuthService = Depends(get_auth_service)):
    info = {
        "backend": "✅ Running",
        "store": "❌ Not Available",
        "collections": {},
    }
    try:
        stats = auth.store.stats()
        info.update({
            "store": f"✅ {stats['backend']}",
            "collections": stats["collections"],
            "session": stats["session"],
        })
    except OSError as e:
        info["store"] = f"⚠️ {str(e)[:80]}"
    return info


# Auth
@app.post("/auth/patient/register", response_model=AuthResult, status_code=201)
def register_patient(payload: PatientCreate, auth: AuthService = Depends(get_auth_service)):
    result = auth.register_patient(payload)
    _raise_for(result, 404)
    return result


@app.post("/auth/doctor/register", response_model=AuthResult, status_code=201)
def register_doctor(payload: DoctorCreate, auth: AuthService = Depends(get_auth_service)):
    result = auth.register_doctor(payload)
    _raise_for(result, 404)
    return result


@app.post("/auth/patient/login", response_model=AuthResult)
def login_patient(payload: PatientLogin, auth: AuthService = Depends(get_auth_service)):
    result = auth.login_patient(payload.identifier, payload.password)
    _raise_for(result, status.HTTP_401_UNAUTHORIZED)
    auth.set_current_user(result.user)
    logger.info("Patient %s logged in", result.user.id)
    return result


@app.post("/auth/doctor/login", response_model=AuthResult)
def login_doctor(payload: DoctorLogin, auth: AuthService = Depends(get_auth_service)):
    result = auth.login_doctor(payload.uid, payload.password)
    _raise_for(result, status.HTTP_401_UNAUTHORIZED)
    auth.set_current_user(result.user)
    logger.info("Doctor %s logged in", result.user.id)
    return result


@app.post("/auth/logout")
def logout(auth: AuthService = Depends(get_auth_service)):
    auth.logout()
    return {"ok": True}


@app.get("/auth/me", response_model=UserRecord)
def me(current: User = Depends(get_current_user)):
    return current


# Patient profile & reports
@app.put("/patients/me/profile", response_model=AuthResult)
def update_profile(
    payload: ProfileUpdate,
    current: Patient = Depends(get_current_patient),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.update_patient(current.id, payload.model_dump(exclude_unset=True))
    _raise_for(result, status.HTTP_404_NOT_FOUND)
    return result


@app.post("/patients/me/report", response_model=HealthReport)
async def generate_report(
    current: Patient = Depends(get_current_patient),
    records: RecordService = Depends(get_record_service),
):
    await _simulated_latency()
    return await run_in_threadpool(records.generate_health_report, current)


@app.get("/patients/me/report", response_model=HealthReport)
def get_report(
    current: Patient = Depends(get_current_patient),
    records: RecordService = Depends(get_record_service),
):
    report = records.get_health_report(current.id)
    if report is None:
        raise HTTPException(status_code=404, detail="No report generated yet")
    return report


@app.get("/patients/me/report/qr")
def get_report_qr(
    current: Patient = Depends(get_current_patient),
    records: RecordService = Depends(get_record_service),
):
    report = records.get_health_report(current.id)
    if report is None:
        raise HTTPException(status_code=404, detail="No report generated yet")
    filename = f"medivault-qr-{'-'.join(current.name.split())}.png"
    return Response(
        content=records.render_share_qr(report.qrCode),
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Doctor
@app.get("/doctor/reports", response_model=HealthReport)
def scan_report(
    token: str = Query(..., min_length=1),
    _: Doctor = Depends(get_current_doctor),
    records: RecordService = Depends(get_record_service),
):
    try:
        report = records.resolve_share_token(token)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


# Blood donors
@app.post("/donors", response_model=BloodDonorEntry, status_code=201)
def register_donor(
    payload: DonorRegistration,
    current: Patient = Depends(get_current_patient),
    auth: AuthService = Depends(get_auth_service),
    records: RecordService = Depends(get_record_service),
):
    entry = records.register_blood_donor(current.id, payload.model_dump())
    auth.update_patient(current.id, {"isDonor": True})
    return entry


@app.get("/donors/search", response_model=List[BloodDonorEntry])
def search_donors(
    bloodGroup: str = Query(...),
    location: str = Query(""),
    records: RecordService = Depends(get_record_service),
):
    return records.search_blood_donors(bloodGroup, location)


# Assistant / OCR
@app.get("/assistant/greeting", response_model=ChatMessage)
def assistant_greeting(auth: AuthService = Depends(get_auth_service)):
    return ChatMessage(
        type="assistant",
        content=assistant.greeting(auth.get_current_user()),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.post("/assistant/chat", response_model=ChatMessage)
async def assistant_chat(payload: ChatRequest, auth: AuthService = Depends(get_auth_service)):
    current = auth.get_current_user()
    patient: Optional[Patient] = current if current is not None and current.type == "patient" else None
    await _simulated_latency()
    return ChatMessage(
        type="assistant",
        content=assistant.reply(payload.message, patient),
        timestamp=datetime.now(timezone.utc).isoformat(),
        disclaimer=assistant.DISCLAIMER,
    )


@app.post("/ocr", response_model=OCRResult)
async def scan_documents(files: List[UploadFile] = File(...)):
    if not files:
        raise HTTPException(status_code=400, detail="Please select files to process.")
    await _simulated_latency()
    first = files[0].filename or ""
    return OCRResult(
        filename=first,
        files_processed=len(files),
        text=assistant.extract_document_text(first),
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
