"""
Record Schemas for the Diagnostic Lab App

Each Pydantic model corresponds to an in-memory collection (lowercased class name).
`<Name>Create` models carry the caller-supplied fields; the stored model adds the
id and any server-assigned timestamps. Fields are snake_case in Python and
camelCase on the wire.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ========= Users =========
class UserCreate(CamelModel):
    username: str
    password: str = Field(..., description="Stored as given, no hashing")


class User(UserCreate):
    id: str


# ========= Patients =========
class PatientCreate(CamelModel):
    full_name: str
    email: str = Field(..., description="Stored exactly as given, no format check")
    phone: str
    date_of_birth: Optional[str] = None
    address: Optional[str] = None


class Patient(PatientCreate):
    id: str


# ========= Tests =========
class TestCreate(CamelModel):
    name: str
    description: Optional[str] = None
    price: int = Field(..., ge=0, description="Minor currency units (paise)")
    report_time: str = Field(..., description="Free text, e.g. '24 hours'")
    category: str = Field(..., description="pathology | radiology | package")


class Test(TestCreate):
    id: str


class TestUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    report_time: Optional[str] = None
    category: Optional[str] = None


# ========= Bookings =========
class BookingCreate(CamelModel):
    patient_id: str
    test_id: str
    preferred_date: str
    preferred_time: str
    collection_method: str = Field(..., description="home | lab")
    address: Optional[str] = Field(None, description="Required in practice for home collection")
    status: str = Field("pending", description="pending | confirmed | completed | cancelled")
    total_amount: int = Field(..., ge=0, description="Minor currency units (paise)")


class Booking(BookingCreate):
    id: str
    booking_date: datetime = Field(default_factory=utcnow)


# ========= Reports =========
class ReportCreate(CamelModel):
    booking_id: str
    patient_id: str
    report_url: Optional[str] = Field(None, description="Opaque link, never generated here")
    status: str = Field("processing", description="processing | ready | sent")


class Report(ReportCreate):
    id: str
    uploaded_at: datetime = Field(default_factory=utcnow)


class ReportUpdate(CamelModel):
    report_url: Optional[str] = None
    status: Optional[str] = None


# ========= Inquiries =========
class InquiryCreate(CamelModel):
    full_name: str
    email: str = Field(..., description="Stored exactly as given, no format check")
    phone: str
    subject: str
    message: str
    status: str = Field("new", description="new | replied | closed")


class Inquiry(InquiryCreate):
    id: str
    created_at: datetime = Field(default_factory=utcnow)


# ========= Composite views =========
class BookingDetails(Booking):
    patient: Optional[Patient] = None
    test: Optional[Test] = None


class ReportDetails(Report):
    booking: Optional[Booking] = None
    test: Optional[Test] = None


class PatientSummary(Patient):
    total_bookings: int = 0
    last_visit: Optional[datetime] = None
