import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from config import Settings, settings as default_settings
from database import MemStorage
from schemas import (
    Booking,
    BookingCreate,
    BookingDetails,
    CamelModel,
    Inquiry,
    InquiryCreate,
    Patient,
    PatientCreate,
    PatientSummary,
    Report,
    ReportCreate,
    ReportDetails,
    Test,
    TestCreate,
    TestUpdate,
    User,
)

logging.basicConfig(level=default_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

router = APIRouter()


# ========= Models for requests =========
class CreateBooking(CamelModel):
    test_id: str
    preferred_date: str
    preferred_time: str
    collection_method: str = Field(..., description="home | lab")
    address: Optional[str] = None
    status: str = "pending"
    total_amount: int = Field(..., ge=0)
    patient_id: Optional[str] = None  # ignored, the patient is resolved by email
    patient_name: str
    patient_email: str
    patient_phone: str
    patient_dob: Optional[str] = None


class UpdateBookingStatus(CamelModel):
    status: str


class SearchReports(CamelModel):
    patient_id: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None


def get_storage(request: Request) -> MemStorage:
    return request.app.state.storage


@router.get("/")
def read_root():
    return {"message": "Diagnostic Lab backend is running"}


@router.get("/health")
def health(storage: MemStorage = Depends(get_storage)):
    return {
        "backend": "running",
        "storage": "in-memory",
        "collections": storage.counts(),
    }


# ========= Tests =========
@router.get("/api/tests", response_model=List[Test])
def list_tests(storage: MemStorage = Depends(get_storage)):
    return storage.get_all_tests()


# ========= Bookings =========
@router.post("/api/bookings", response_model=Booking)
def create_booking(payload: CreateBooking, storage: MemStorage = Depends(get_storage)):
    # Held across all three writes so two first-time bookings under one email share a patient
    with storage.lock:
        if storage.get_test(payload.test_id) is None:
            raise HTTPException(status_code=404, detail="Test not found")

        patient = storage.get_patient_by_email(payload.patient_email)
        if patient is None:
            patient = storage.create_patient(PatientCreate(
                full_name=payload.patient_name,
                email=payload.patient_email,
                phone=payload.patient_phone,
                date_of_birth=payload.patient_dob,
                address=payload.address,
            ))

        booking = storage.create_booking(BookingCreate(
            patient_id=patient.id,
            test_id=payload.test_id,
            preferred_date=payload.preferred_date,
            preferred_time=payload.preferred_time,
            collection_method=payload.collection_method,
            address=payload.address,
            status=payload.status,
            total_amount=payload.total_amount,
        ))

        storage.create_report(ReportCreate(
            booking_id=booking.id,
            patient_id=patient.id,
            status="processing",
        ))
    return booking


# ========= Reports =========
@router.post("/api/reports/search", response_model=List[ReportDetails])
def search_reports(payload: SearchReports, storage: MemStorage = Depends(get_storage)):
    patient = None
    if payload.patient_id:
        patient = storage.get_patient(payload.patient_id)
    elif payload.phone:
        patient = storage.get_patient_by_phone(payload.phone, payload.date_of_birth)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")

    bookings = {b.id: b for b in storage.get_bookings_by_patient(patient.id)}
    results = []
    for report in storage.get_reports_by_patient(patient.id):
        booking = bookings.get(report.booking_id)
        test = storage.get_test(booking.test_id) if booking else None
        results.append(ReportDetails(**report.model_dump(), booking=booking, test=test))
    return results


# ========= Inquiries =========
@router.post("/api/inquiries", response_model=Inquiry)
def create_inquiry(payload: InquiryCreate, storage: MemStorage = Depends(get_storage)):
    return storage.create_inquiry(payload)


# ========= Admin =========
@router.get("/api/admin/bookings", response_model=List[BookingDetails])
def admin_list_bookings(storage: MemStorage = Depends(get_storage)):
    return [
        BookingDetails(
            **b.model_dump(),
            patient=storage.get_patient(b.patient_id),
            test=storage.get_test(b.test_id),
        )
        for b in storage.get_all_bookings()
    ]


@router.get("/api/admin/patients", response_model=List[PatientSummary])
def admin_list_patients(storage: MemStorage = Depends(get_storage)):
    summaries = []
    for patient in storage.get_all_patients():
        bookings = storage.get_bookings_by_patient(patient.id)
        summaries.append(PatientSummary(
            **patient.model_dump(),
            total_bookings=len(bookings),
            last_visit=max((b.booking_date for b in bookings), default=None),
        ))
    return summaries


# The admin dashboard reads its inquiry list from /api/admin/reports
@router.get("/api/admin/reports", response_model=List[Inquiry])
@router.get("/api/admin/inquiries", response_model=List[Inquiry])
def admin_list_inquiries(storage: MemStorage = Depends(get_storage)):
    return storage.get_all_inquiries()


@router.patch("/api/admin/bookings/{booking_id}/status", response_model=Booking)
def admin_update_booking_status(booking_id: str, payload: UpdateBookingStatus,
                                storage: MemStorage = Depends(get_storage)):
    booking = storage.update_booking_status(booking_id, payload.status)
    if booking is None:
        logger.warning(f"Status update for unknown booking {booking_id}")
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post("/api/admin/tests", response_model=Test)
def admin_create_test(payload: TestCreate, storage: MemStorage = Depends(get_storage)):
    return storage.create_test(payload)


@router.patch("/api/admin/tests/{test_id}", response_model=Test)
def admin_update_test(test_id: str, payload: TestUpdate, storage: MemStorage = Depends(get_storage)):
    test = storage.update_test(test_id, payload)
    if test is None:
        logger.warning(f"Update for unknown test {test_id}")
        raise HTTPException(status_code=404, detail="Test not found")
    return test


# ========= Schema endpoint (for viewers/tools) =========
@router.get("/schema")
def get_schema():
    return {
        "collections": [
            {"name": "user", "schema": User.model_json_schema()},
            {"name": "patient", "schema": Patient.model_json_schema()},
            {"name": "test", "schema": Test.model_json_schema()},
            {"name": "booking", "schema": Booking.model_json_schema()},
            {"name": "report", "schema": Report.model_json_schema()},
            {"name": "inquiry", "schema": Inquiry.model_json_schema()},
        ]
    }


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(storage: Optional[MemStorage] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(title=settings.APP_NAME, version=settings.VERSION)
    app.state.storage = storage if storage is not None else MemStorage(seed=settings.SEED_TESTS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
