import io
import logging
import re
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import qrcode
from pydantic import ValidationError

from database import LocalStore, find_by_patient, upsert_by_patient
from schemas import (
    BasicInfo, BloodDonorEntry, HealthReport, HealthSummary, Patient,
    StoredReport, Vitals, dump_record,
)

logger = logging.getLogger(__name__)

DEFAULT_SHARE_SCHEME = "medivault"

GENERAL_RECOMMENDATIONS = [
    "Drink 8-10 glasses of water daily",
    "Engage in 30 minutes of physical activity",
    "Schedule regular health checkups",
    "Follow a balanced diet rich in fruits and vegetables",
]


class TokenClock:
    """Millisecond clock that never hands out the same value twice."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = int(time.time() * 1000)
            self._last = now if now > self._last else self._last + 1
            return self._last


token_clock = TokenClock()


# Share tokens

def make_share_token(patient_id: str, stamp: int, scheme: str = DEFAULT_SHARE_SCHEME) -> str:
    return f"{scheme}://patient/{patient_id}/report/{stamp}"


def parse_share_token(token: str, scheme: str = DEFAULT_SHARE_SCHEME) -> Optional[Tuple[str, int]]:
    m = re.fullmatch(rf"{re.escape(scheme)}://patient/([^/]+)/report/(\d+)", token.strip())
    if not m:
        return None
    return m.group(1), int(m.group(2))


def render_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(box_size=10, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="#1E90FF", back_color="#FFFFFF")
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


# Report computation

def compute_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> Optional[float]:
    if not height_cm or not weight_kg:
        return None
    return round(weight_kg / (height_cm / 100) ** 2, 1)


def classify_weight(bmi: Optional[float]) -> str:
    if bmi is None:
        return "Assessment Pending"
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal"
    if bmi < 30:
        return "Overweight"
    return "Obese"


def build_recommendations(patient: Patient) -> List[str]:
    recommendations = []
    if not patient.height or not patient.weight:
        recommendations.append("Complete your physical measurements for better health assessment")
    if not patient.sleepSchedule:
        recommendations.append("Maintain 7-9 hours of sleep for optimal health")
    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def build_risk_factors(patient: Patient) -> List[str]:
    risks = []
    if patient.allergies:
        risks.append(f"Allergies: {patient.allergies}")
    if patient.medicalHistory:
        risks.append(f"Medical History: {patient.medicalHistory}")
    return risks


def build_health_report(patient: Patient, generated_at: datetime, stamp: int,
                        scheme: str = DEFAULT_SHARE_SCHEME) -> HealthReport:
    bmi = compute_bmi(patient.height, patient.weight)
    summary = HealthSummary(
        basicInfo=BasicInfo(name=patient.name, age=patient.age, bloodGroup=patient.bloodGroup, bmi=bmi),
        vitals=Vitals(
            height=patient.height,
            weight=patient.weight,
            bloodPressure=patient.bloodPressure,
            spo2=patient.spo2,
        ),
        overallHealth=classify_weight(bmi),
    )
    return HealthReport(
        patientId=patient.id,
        generatedAt=generated_at.isoformat(),
        summary=summary,
        recommendations=build_recommendations(patient),
        riskFactors=build_risk_factors(patient),
        qrCode=make_share_token(patient.id, stamp, scheme),
    )


class RecordService:
    def __init__(self, store: LocalStore, share_scheme: str = DEFAULT_SHARE_SCHEME,
                 clock: TokenClock = token_clock) -> None:
        self.store = store
        self.share_scheme = share_scheme
        self.clock = clock

    # Health reports

    def generate_health_report(self, patient: Patient) -> HealthReport:
        stamp = self.clock.next()
        generated_at = datetime.fromtimestamp(stamp / 1000, tz=timezone.utc)
        report = build_health_report(patient, generated_at, stamp, self.share_scheme)
        row = StoredReport(
            patientId=patient.id,
            report=report,
            generatedAt=report.generatedAt,
            qrCode=report.qrCode,
        )
        self.store.save("patient_reports", upsert_by_patient(self.store.load("patient_reports"), dump_record(row)))
        logger.info("Generated health report for patient %s", patient.id)
        return report

    def get_health_report(self, patient_id: str) -> Optional[HealthReport]:
        row = find_by_patient(self.store.load("patient_reports"), patient_id)
        if row is None:
            return None
        try:
            return StoredReport.model_validate(row).report
        except ValidationError:
            logger.warning("Stored report for patient %s is unreadable", patient_id)
            return None

    def resolve_share_token(self, token: str) -> Optional[HealthReport]:
        parsed = parse_share_token(token, self.share_scheme)
        if parsed is None:
            raise ValueError("Malformed share token")
        patient_id, _ = parsed
        return self.get_health_report(patient_id)

    def render_share_qr(self, token: str) -> bytes:
        return render_qr_png(token)

    # Blood donors

    def get_blood_donors(self) -> List[BloodDonorEntry]:
        donors: List[BloodDonorEntry] = []
        for raw in self.store.load("blood_donors"):
            try:
                donors.append(BloodDonorEntry.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed donor entry %r", raw.get("patientId"))
        return donors

    def register_blood_donor(self, patient_id: str, donor_data: Dict[str, Any]) -> BloodDonorEntry:
        entry = BloodDonorEntry(
            **{
                **donor_data,
                "patientId": patient_id,
                "registeredAt": datetime.now(timezone.utc).isoformat(),
            }
        )
        self.store.save("blood_donors", upsert_by_patient(self.store.load("blood_donors"), dump_record(entry)))
        logger.info("Registered blood donor entry for patient %s", patient_id)
        return entry

    def search_blood_donors(self, blood_group: str, location: str) -> List[BloodDonorEntry]:
        needle = location.lower()
        return [
            d for d in self.get_blood_donors()
            if d.bloodGroup == blood_group and needle in d.location.lower()
        ]
