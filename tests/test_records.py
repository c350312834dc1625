from datetime import datetime, timezone

import pytest

from records import (
    TokenClock, build_health_report, classify_weight, compute_bmi,
    make_share_token, parse_share_token, render_qr_png,
)


@pytest.fixture
def patient(auth, patient_data):
    return auth.register_patient(patient_data).user


def test_bmi_and_classification():
    assert compute_bmi(170, 70) == 24.2
    assert compute_bmi(170, 100) == 34.6
    assert compute_bmi(None, 70) is None
    assert compute_bmi(170, None) is None

    assert classify_weight(18.4) == "Underweight"
    assert classify_weight(18.5) == "Normal"
    assert classify_weight(24.9) == "Normal"
    assert classify_weight(25.0) == "Overweight"
    assert classify_weight(30.0) == "Obese"
    assert classify_weight(None) == "Assessment Pending"


def test_report_after_profile_update(auth, records, patient):
    refreshed = auth.update_patient(patient.id, {"height": 170, "weight": 70}).user
    report = records.generate_health_report(refreshed)
    assert report.summary.basicInfo.bmi == 24.2
    assert report.summary.overallHealth == "Normal"

    refreshed = auth.update_patient(patient.id, {"height": 170, "weight": 100}).user
    report = records.generate_health_report(refreshed)
    assert report.summary.basicInfo.bmi == 34.6
    assert report.summary.overallHealth == "Obese"


def test_report_without_measurements(patient):
    report = build_health_report(patient, datetime(2024, 5, 1, tzinfo=timezone.utc), 1714521600000)
    assert report.summary.basicInfo.bmi is None
    assert report.summary.overallHealth == "Assessment Pending"
    assert report.recommendations == [
        "Complete your physical measurements for better health assessment",
        "Maintain 7-9 hours of sleep for optimal health",
        "Drink 8-10 glasses of water daily",
        "Engage in 30 minutes of physical activity",
        "Schedule regular health checkups",
        "Follow a balanced diet rich in fruits and vegetables",
    ]
    assert report.riskFactors == []
    assert report.qrCode == f"medivault://patient/{patient.id}/report/1714521600000"
    assert report.generatedAt == "2024-05-01T00:00:00+00:00"


def test_report_with_full_profile(patient):
    full = patient.model_copy(update={
        "height": 180, "weight": 55, "sleepSchedule": "11pm-7am",
        "allergies": "Penicillin", "medicalHistory": "Asthma",
        "bloodPressure": "120/80", "spo2": 98,
    })
    report = build_health_report(full, datetime.now(timezone.utc), 1)
    assert report.summary.overallHealth == "Underweight"
    assert report.summary.vitals.bloodPressure == "120/80"
    assert report.recommendations[0] == "Drink 8-10 glasses of water daily"
    assert len(report.recommendations) == 4
    assert report.riskFactors == ["Allergies: Penicillin", "Medical History: Asthma"]


def test_regenerating_keeps_one_report(records, store, patient):
    first = records.generate_health_report(patient)
    second = records.generate_health_report(patient)

    assert first.qrCode != second.qrCode
    rows = [r for r in store.load("patient_reports") if r["patientId"] == patient.id]
    assert len(rows) == 1
    assert rows[0]["qrCode"] == second.qrCode
    assert rows[0]["report"]["qrCode"] == second.qrCode
    assert records.get_health_report(patient.id) == second


def test_get_missing_report(records):
    assert records.get_health_report("nobody") is None


def test_token_clock_never_repeats():
    clock = TokenClock()
    stamps = [clock.next() for _ in range(200)]
    assert len(set(stamps)) == len(stamps)
    assert stamps == sorted(stamps)


def test_share_token_parse():
    token = make_share_token("abc123", 1700000000000)
    assert token == "medivault://patient/abc123/report/1700000000000"
    assert parse_share_token(token) == ("abc123", 1700000000000)
    assert parse_share_token("https://example.com/patient/abc/report/1") is None
    assert parse_share_token("medivault://patient/abc/report/") is None
    assert parse_share_token("carevault://patient/x/report/5", scheme="carevault") == ("x", 5)


def test_resolve_share_token(records, patient):
    report = records.generate_health_report(patient)
    assert records.resolve_share_token(report.qrCode) == report
    assert records.resolve_share_token("medivault://patient/ghost/report/1") is None
    with pytest.raises(ValueError):
        records.resolve_share_token("garbage")


def test_custom_share_scheme(store, patient):
    from records import RecordService

    report = RecordService(store, share_scheme="carevault").generate_health_report(patient)
    assert report.qrCode.startswith(f"carevault://patient/{patient.id}/report/")


def test_qr_png():
    png = render_qr_png("medivault://patient/abc/report/1")
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


# Blood donors

def test_register_donor_upserts(records, store):
    records.register_blood_donor("p1", {"bloodGroup": "O+", "location": "Springfield", "contact": "555"})
    records.register_blood_donor("p1", {"bloodGroup": "O+", "location": "Shelbyville"})

    donors = records.get_blood_donors()
    assert len(donors) == 1
    assert donors[0].location == "Shelbyville"
    assert donors[0].registeredAt
    # Extra metadata from the first registration is gone after overwrite
    assert "contact" not in store.load("blood_donors")[0]


def test_register_donor_keeps_extra_fields(records, store):
    entry = records.register_blood_donor("p2", {"bloodGroup": "A-", "location": "Ogdenville", "lastDonation": "2024-01-01"})
    assert entry.patientId == "p2"
    assert store.load("blood_donors")[0]["lastDonation"] == "2024-01-01"


def test_search_donors(records):
    records.register_blood_donor("p1", {"bloodGroup": "O+", "location": "Springfield"})
    records.register_blood_donor("p2", {"bloodGroup": "O+", "location": "SPRINGDALE"})
    records.register_blood_donor("p3", {"bloodGroup": "O+", "location": "Spring Valley, TX"})
    records.register_blood_donor("p4", {"bloodGroup": "O-", "location": "Springfield"})
    records.register_blood_donor("p5", {"bloodGroup": "O+", "location": "Capital City"})

    found = records.search_blood_donors("O+", "spring")
    assert [d.patientId for d in found] == ["p1", "p2", "p3"]

    assert records.search_blood_donors("O-", "spring")[0].patientId == "p4"
    assert records.search_blood_donors("AB+", "spring") == []
    # An empty location matches every entry of the group
    assert [d.patientId for d in records.search_blood_donors("O+", "")] == ["p1", "p2", "p3", "p5"]


def test_malformed_donor_rows_are_skipped(records, store):
    store.save("blood_donors", [{"patientId": "p1", "bloodGroup": "O+"}])
    records.register_blood_donor("p2", {"bloodGroup": "O+", "location": "Springfield"})

    assert [d.patientId for d in records.search_blood_donors("O+", "")] == ["p2"]
    # The unreadable row stays in the store
    assert store.load("blood_donors")[0]["patientId"] == "p1"


def test_unreadable_report_row(records, store):
    store.save("patient_reports", [{"patientId": "p1", "report": {"qrCode": "x"}}])
    assert records.get_health_report("p1") is None
    assert records.resolve_share_token("medivault://patient/p1/report/1") is None
