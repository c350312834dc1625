"""
Record Schemas for MediVault

Each Pydantic model mirrors a record kept in the local blob store.
Field names are camelCase so the persisted JSON layout matches what
the browser client reads and writes.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter
from typing import Optional, Literal, List, Union, Any, Dict, Annotated
from enum import Enum

BloodGroup = Literal['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']

Speciality = Literal[
    'Cardiology', 'Dermatology', 'Emergency Medicine', 'Family Medicine',
    'General Surgery', 'Internal Medicine', 'Neurology', 'Obstetrics and Gynecology',
    'Oncology', 'Ophthalmology', 'Orthopedics', 'Pediatrics', 'Psychiatry',
    'Radiology', 'Urology', 'Other',
]

WeightStatus = Literal['Underweight', 'Normal', 'Overweight', 'Obese', 'Assessment Pending']


# Stored users

class Patient(BaseModel):
    type: Literal['patient'] = 'patient'
    id: str
    email: str
    name: str
    phone: str
    dateOfBirth: str
    age: int
    place: str
    bloodGroup: str
    createdAt: str
    height: Optional[float] = Field(default=None, description="Height in cm")
    weight: Optional[float] = Field(default=None, description="Weight in kg")
    bloodPressure: Optional[str] = Field(default=None, description="systolic/diastolic")
    spo2: Optional[float] = None
    eyeSight: Optional[str] = None
    sleepSchedule: Optional[str] = None
    medicalHistory: Optional[str] = None
    allergies: Optional[str] = None
    isDonor: bool = False


class Doctor(BaseModel):
    type: Literal['doctor'] = 'doctor'
    id: str
    email: str
    name: str
    uid: str = Field(..., description="Medical license identifier")
    dateOfBirth: str
    place: str
    hospitalName: str
    speciality: str
    createdAt: str


UserRecord = Annotated[Union[Patient, Doctor], Field(discriminator='type')]

user_adapter = TypeAdapter(UserRecord)


# Registration / login payloads

class PatientCreate(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=10)
    password: str = Field(..., min_length=6)
    dateOfBirth: str = Field(..., min_length=1)
    age: int = Field(..., ge=1, le=120)
    place: str = Field(..., min_length=2)
    bloodGroup: BloodGroup


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=2)
    uid: str = Field(..., min_length=6)
    email: EmailStr
    password: str = Field(..., min_length=6)
    dateOfBirth: str = Field(..., min_length=1)
    place: str = Field(..., min_length=2)
    hospitalName: str = Field(..., min_length=2)
    speciality: Speciality


class PatientLogin(BaseModel):
    identifier: str = Field(..., description="Email or phone number")
    password: str


class DoctorLogin(BaseModel):
    uid: str
    password: str


class ProfileUpdate(BaseModel):
    height: Optional[float] = Field(default=None, gt=0)
    weight: Optional[float] = Field(default=None, gt=0)
    bloodPressure: Optional[str] = None
    spo2: Optional[float] = Field(default=None, ge=0, le=100)
    eyeSight: Optional[str] = None
    sleepSchedule: Optional[str] = None
    medicalHistory: Optional[str] = None
    allergies: Optional[str] = None


class AuthError(str, Enum):
    DUPLICATE_IDENTITY = 'DuplicateIdentity'
    NOT_FOUND = 'NotFound'
    INVALID_RECORD = 'InvalidRecord'


class AuthResult(BaseModel):
    success: bool
    message: str
    user: Optional[UserRecord] = None
    error: Optional[AuthError] = None


# Health reports

class BasicInfo(BaseModel):
    name: str
    age: int
    bloodGroup: str
    bmi: Optional[float] = None


class Vitals(BaseModel):
    height: Optional[float] = None
    weight: Optional[float] = None
    bloodPressure: Optional[str] = None
    spo2: Optional[float] = None


class HealthSummary(BaseModel):
    basicInfo: BasicInfo
    vitals: Vitals
    overallHealth: WeightStatus


class HealthReport(BaseModel):
    patientId: str
    generatedAt: str
    summary: HealthSummary
    recommendations: List[str] = Field(default_factory=list)
    riskFactors: List[str] = Field(default_factory=list)
    qrCode: str = Field(..., description="Share token encoded into the QR image")


class StoredReport(BaseModel):
    patientId: str
    report: HealthReport
    generatedAt: str
    qrCode: str


# Blood donors

class BloodDonorEntry(BaseModel):
    model_config = ConfigDict(extra='allow')

    patientId: str
    bloodGroup: str
    location: str
    registeredAt: str


class DonorRegistration(BaseModel):
    model_config = ConfigDict(extra='allow')

    bloodGroup: BloodGroup
    location: str = Field(..., min_length=1)


# Mock assistant / OCR

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatMessage(BaseModel):
    type: Literal['user', 'assistant']
    content: str
    timestamp: str
    disclaimer: Optional[str] = None


class OCRResult(BaseModel):
    filename: str
    files_processed: int
    text: str


def dump_record(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode='json')
