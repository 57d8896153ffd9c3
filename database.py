"""
In-memory storage for the Diagnostic Lab App

One `Collection` per record type, all owned by a `MemStorage` that is built once at
startup and injected wherever it is needed. Nothing is persisted: every record is
lost when the process exits.
"""
import logging
import threading
import uuid
from typing import Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

from schemas import (
    Booking,
    BookingCreate,
    Inquiry,
    InquiryCreate,
    Patient,
    PatientCreate,
    Report,
    ReportCreate,
    ReportUpdate,
    Test,
    TestCreate,
    TestUpdate,
    User,
    UserCreate,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

IdFactory = Callable[[], str]


def new_uuid() -> str:
    return str(uuid.uuid4())


DEFAULT_TESTS = [
    {"id": "1", "name": "Complete Blood Count (CBC)",
     "description": "Basic blood analysis including hemoglobin, white blood cells, red blood cells, and platelets",
     "price": 45000, "report_time": "24 hours", "category": "pathology"},
    {"id": "2", "name": "Lipid Profile",
     "description": "Cholesterol screening including total cholesterol, HDL, LDL, and triglycerides",
     "price": 65000, "report_time": "24 hours", "category": "pathology"},
    {"id": "3", "name": "Liver Function Test",
     "description": "Assessment of liver health including ALT, AST, bilirubin, and alkaline phosphatase",
     "price": 75000, "report_time": "24 hours", "category": "pathology"},
    {"id": "4", "name": "Full Body Checkup",
     "description": "Comprehensive health package including blood work, urine analysis, and basic imaging",
     "price": 249900, "report_time": "48 hours", "category": "package"},
    {"id": "5", "name": "Diabetes Package",
     "description": "Complete diabetes screening including HbA1c, fasting glucose, and insulin levels",
     "price": 89900, "report_time": "24 hours", "category": "package"},
    {"id": "6", "name": "Thyroid Profile",
     "description": "Thyroid function assessment including TSH, T3, and T4",
     "price": 55000, "report_time": "24 hours", "category": "pathology"},
]


class Collection(Generic[R]):
    """Records of one type keyed by id.

    Stored records are frozen models, so the only way to change one is `update`,
    which swaps in a modified copy.
    """

    def __init__(self, name: str, model: Type[R], id_factory: IdFactory, lock: threading.RLock):
        self.name = name
        self.model = model
        self._id_factory = id_factory
        self._lock = lock
        self._records: Dict[str, R] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, record_id: str) -> Optional[R]:
        with self._lock:
            return self._records.get(record_id)

    def list(self) -> List[R]:
        with self._lock:
            return list(self._records.values())

    def create(self, data: BaseModel) -> R:
        """Store `data` under a fresh id; model defaults fill status and timestamps."""
        record = self.model(**data.model_dump(), id=self._id_factory())
        with self._lock:
            self._records[record.id] = record
        return record

    def put(self, record: R) -> R:
        with self._lock:
            self._records[record.id] = record
        return record

    def update(self, record_id: str, **changes) -> Optional[R]:
        """Assign the named fields on an existing record; other fields keep their values.

        Returns None when the id is unknown. Naming a field the record does not
        declare (or `id`) raises TypeError.
        """
        unknown = set(changes) - (set(self.model.model_fields) - {"id"})
        if unknown:
            raise TypeError(f"{self.model.__name__} cannot update field(s): {', '.join(sorted(unknown))}")
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._records[record_id] = updated
            return updated

    def find(self, predicate: Callable[[R], bool]) -> Optional[R]:
        """First record matching `predicate` (linear scan)."""
        return next((record for record in self.list() if predicate(record)), None)

    def filter(self, predicate: Callable[[R], bool]) -> List[R]:
        """Every record matching `predicate` (linear scan)."""
        return [record for record in self.list() if predicate(record)]


class MemStorage:
    def __init__(self, id_factory: IdFactory = new_uuid, seed: bool = True):
        # Shared by every collection so multi-step flows can hold it across calls
        self.lock = threading.RLock()
        self.users: Collection[User] = Collection("user", User, id_factory, self.lock)
        self.patients: Collection[Patient] = Collection("patient", Patient, id_factory, self.lock)
        self.tests: Collection[Test] = Collection("test", Test, id_factory, self.lock)
        self.bookings: Collection[Booking] = Collection("booking", Booking, id_factory, self.lock)
        self.reports: Collection[Report] = Collection("report", Report, id_factory, self.lock)
        self.inquiries: Collection[Inquiry] = Collection("inquiry", Inquiry, id_factory, self.lock)

        if seed:
            self.seed_tests()
        logger.info(f"In-memory storage ready ({len(self.tests)} tests in catalog)")

    @property
    def collections(self) -> List[Collection]:
        return [self.users, self.patients, self.tests, self.bookings, self.reports, self.inquiries]

    def seed_tests(self):
        for t in DEFAULT_TESTS:
            self.tests.put(Test(**t))

    def counts(self) -> Dict[str, int]:
        return {c.name: len(c) for c in self.collections}

    # ========= Users =========
    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.users.find(lambda u: u.username == username)

    def create_user(self, data: UserCreate) -> User:
        return self.users.create(data)

    # ========= Patients =========
    def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self.patients.get(patient_id)

    def get_patient_by_email(self, email: str) -> Optional[Patient]:
        return self.patients.find(lambda p: p.email == email)

    def get_patient_by_phone(self, phone: str, date_of_birth: Optional[str]) -> Optional[Patient]:
        """First patient with this phone and date of birth; a missing date of birth never matches."""
        if date_of_birth is None:
            return None
        return self.patients.find(lambda p: p.phone == phone and p.date_of_birth == date_of_birth)

    def create_patient(self, data: PatientCreate) -> Patient:
        patient = self.patients.create(data)
        logger.info(f"Created patient {patient.id}")
        return patient

    def get_all_patients(self) -> List[Patient]:
        return self.patients.list()

    # ========= Tests =========
    def get_test(self, test_id: str) -> Optional[Test]:
        return self.tests.get(test_id)

    def get_all_tests(self) -> List[Test]:
        return self.tests.list()

    def create_test(self, data: TestCreate) -> Test:
        return self.tests.create(data)

    def update_test(self, test_id: str, changes: TestUpdate) -> Optional[Test]:
        return self.tests.update(test_id, **changes.model_dump(exclude_unset=True))

    # ========= Bookings =========
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    def get_all_bookings(self) -> List[Booking]:
        return self.bookings.list()

    def get_bookings_by_patient(self, patient_id: str) -> List[Booking]:
        return self.bookings.filter(lambda b: b.patient_id == patient_id)

    def create_booking(self, data: BookingCreate) -> Booking:
        booking = self.bookings.create(data)
        logger.info(f"Created booking {booking.id} for patient {booking.patient_id} (test {booking.test_id})")
        return booking

    def update_booking_status(self, booking_id: str, status: str) -> Optional[Booking]:
        booking = self.bookings.update(booking_id, status=status)
        if booking is not None:
            logger.info(f"Booking {booking_id} status set to {status!r}")
        return booking

    # ========= Reports =========
    def get_report(self, report_id: str) -> Optional[Report]:
        return self.reports.get(report_id)

    def get_reports_by_patient(self, patient_id: str) -> List[Report]:
        return self.reports.filter(lambda r: r.patient_id == patient_id)

    def get_report_by_booking(self, booking_id: str) -> Optional[Report]:
        return self.reports.find(lambda r: r.booking_id == booking_id)

    def create_report(self, data: ReportCreate) -> Report:
        return self.reports.create(data)

    def update_report(self, report_id: str, changes: ReportUpdate) -> Optional[Report]:
        return self.reports.update(report_id, **changes.model_dump(exclude_unset=True))

    # ========= Inquiries =========
    def get_inquiry(self, inquiry_id: str) -> Optional[Inquiry]:
        return self.inquiries.get(inquiry_id)

    def get_all_inquiries(self) -> List[Inquiry]:
        return self.inquiries.list()

    def create_inquiry(self, data: InquiryCreate) -> Inquiry:
        return self.inquiries.create(data)

    def update_inquiry_status(self, inquiry_id: str, status: str) -> Optional[Inquiry]:
        return self.inquiries.update(inquiry_id, status=status)
