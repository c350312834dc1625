"""
Template responders for the health assistant chat and document scanning.

Neither does real inference: replies are picked by keyword matches on the
user's message (or the uploaded file's name) and filled from fixed text.
"""
from datetime import date
from typing import Optional, Union

from records import compute_bmi
from schemas import Doctor, Patient

DISCLAIMER = (
    "This assistant provides general health information only. "
    "For medical emergencies, contact your doctor immediately."
)


def greeting(user: Optional[Union[Patient, Doctor]]) -> str:
    name = user.name if user is not None else "there"
    return (
        f"Hello {name}! I'm your health assistant. I can help you with:\n\n"
        "- Health recommendations based on your profile\n"
        "- Symptom analysis and possible causes\n"
        "- Medication information and interactions\n"
        "- Lifestyle and wellness tips\n"
        "- Medical questions and general health guidance\n\n"
        "How can I assist you today?"
    )


def _recommendation_reply(patient: Optional[Patient]) -> str:
    text = (
        "Based on your profile, here are personalized recommendations:\n\n"
        "- Physical Activity: Aim for 30 minutes of moderate exercise daily\n"
        "- Hydration: Drink 8-10 glasses of water throughout the day\n"
        "- Nutrition: Include plenty of fruits, vegetables, and lean proteins\n"
        "- Sleep: Maintain 7-9 hours of quality sleep each night\n"
        "- Stress Management: Practice meditation or deep breathing exercises\n"
    )
    if patient is not None and patient.bloodGroup:
        text += f"\nAs someone with blood group {patient.bloodGroup}, consider iron-rich foods in your diet.\n"
    return text + "\nWould you like specific advice on any of these areas?"


def _symptom_reply() -> str:
    return (
        "I understand you're experiencing symptoms. While I can provide general information, "
        "please remember that serious symptoms require professional medical attention.\n\n"
        "Common symptom patterns:\n"
        "- Fever + Headache: Could indicate viral infection, stay hydrated and rest\n"
        "- Chest pain: Seek immediate medical attention if severe\n"
        "- Persistent cough: May need respiratory evaluation\n"
        "- Abdominal pain: Location and severity matter for diagnosis\n\n"
        "When to seek immediate care:\n"
        "- Difficulty breathing\n"
        "- Severe chest pain\n"
        "- High fever (>103°F)\n"
        "- Severe abdominal pain\n\n"
        "Please consult your healthcare provider for proper diagnosis and treatment. "
        "Would you like general wellness tips instead?"
    )


def _medication_reply(patient: Optional[Patient]) -> str:
    text = (
        "I can provide general medication information:\n\n"
        "Important reminders:\n"
        "- Take medications as prescribed by your doctor\n"
        "- Follow the correct timing and dosage\n"
        "- Check if medication should be taken with or without food\n"
        "- Never share prescription medications\n"
        "- Stay hydrated when taking most medications\n\n"
        "Common interactions to be aware of:\n"
        "- Antibiotics + Dairy products (may reduce effectiveness)\n"
        "- Blood thinners + Aspirin (increased bleeding risk)\n"
        "- Heart medications + Grapefruit (can be dangerous)\n"
    )
    if patient is not None and patient.allergies:
        text += f"\nYour recorded allergies: {patient.allergies}\n"
    return text + (
        "\nAlways consult your pharmacist or doctor before starting new medications. "
        "What specific medication information do you need?"
    )


def _wellness_reply(patient: Optional[Patient]) -> str:
    text = (
        "Here's a comprehensive wellness overview:\n\n"
        "Daily Health Habits:\n"
        "- Start your day with hydration and light stretching\n"
        "- Eat balanced meals with proper portions\n"
        "- Take regular breaks for movement if you have a desk job\n"
        "- Practice mindfulness or meditation for mental health\n\n"
        "Preventive Care:\n"
        "- Schedule regular checkups with your primary care physician\n"
        "- Don't neglect dental health - visit your dentist regularly\n"
        "- Get regular eye exams\n"
        "- Stay up to date with vaccinations\n"
    )
    if patient is not None:
        bmi = compute_bmi(patient.height, patient.weight)
        bmi_line = f"BMI: {bmi:.1f}" if bmi is not None else "Complete your measurements for BMI calculation"
        text += (
            "\nYour Profile Summary:\n"
            f"Blood Group: {patient.bloodGroup}\n"
            f"Age: {patient.age} years\n"
            f"{bmi_line}\n"
        )
    return text + "\nWhat aspect of your health would you like to focus on?"


def _default_reply() -> str:
    return (
        "I'm here to help with your health-related questions! I can assist with:\n\n"
        "- Symptom Analysis: Describe symptoms for possible causes\n"
        "- Medication Info: General drug information and interactions\n"
        "- Health Recommendations: Personalized wellness advice\n"
        "- Nutrition Guidance: Diet and lifestyle suggestions\n"
        "- Exercise Tips: Safe workout recommendations\n\n"
        "Please ask me about any health topic, and I'll do my best to provide helpful, "
        "accurate information. Remember, for serious medical concerns, always consult "
        "with a healthcare professional.\n\n"
        "What would you like to know more about?"
    )


def reply(query: str, patient: Optional[Patient] = None) -> str:
    q = query.lower()

    # First matching group wins
    if "recommendation" in q or "advice" in q:
        return _recommendation_reply(patient)
    if "symptom" in q or "pain" in q or "fever" in q:
        return _symptom_reply()
    if "medicine" in q or "medication" in q or "drug" in q:
        return _medication_reply(patient)
    if "health" in q or "wellness" in q:
        return _wellness_reply(patient)
    return _default_reply()


# Document scanning

PRESCRIPTION_TEMPLATE = """PRESCRIPTION

Dr. Sarah Johnson, MD
Internal Medicine
City General Hospital

Patient: John Doe
Date: {today}

Rx:
1. Amoxicillin 500mg
   Take 1 tablet three times daily with food
   Duration: 7 days

2. Ibuprofen 400mg
   Take 1 tablet as needed for pain
   Maximum 3 tablets per day

3. Multivitamin
   Take 1 tablet daily with breakfast

Follow-up in 1 week

Dr. Sarah Johnson
License: MD12345"""

MEDICINE_TEMPLATE = """MEDICINE INFORMATION

Product Name: Paracetamol 500mg
Manufacturer: PharmaCorp Ltd.
Batch No: PC2024001
Exp. Date: 12/2025

Active Ingredient: Paracetamol 500mg
Excipients: Microcrystalline cellulose, Starch

Indications: Pain relief, Fever reduction
Dosage: Adults - 1-2 tablets every 6-8 hours
Maximum daily dose: 8 tablets

Storage: Store below 30°C in dry place
Keep out of reach of children

MRP: ₹45.00"""

MEDICAL_REPORT_TEMPLATE = """MEDICAL REPORT

Patient Information:
Name: John Doe
Age: 32 years
Date of Visit: {today}

Chief Complaint: Regular health checkup

Vital Signs:
- Blood Pressure: 120/80 mmHg
- Temperature: 98.6°F
- Pulse: 72 bpm
- Weight: 70 kg
- Height: 175 cm

Physical Examination:
General appearance: Well-developed, well-nourished
Heart: Regular rate and rhythm
Lungs: Clear to auscultation
Abdomen: Soft, non-tender

Assessment: Patient in good health
Plan: Continue current lifestyle, return in 6 months for routine follow-up

Dr. Michael Smith, MD"""


def extract_document_text(filename: str, today: Optional[date] = None) -> str:
    name = filename.lower()
    stamp = (today or date.today()).strftime("%m/%d/%Y")
    if "rx" in name or "prescription" in name:
        return PRESCRIPTION_TEMPLATE.format(today=stamp)
    if "med" in name or "pill" in name:
        return MEDICINE_TEMPLATE
    return MEDICAL_REPORT_TEMPLATE.format(today=stamp)
