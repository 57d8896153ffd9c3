import itertools

import pytest
from fastapi.testclient import TestClient

from database import MemStorage
from main import create_app


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def storage(id_factory):
    return MemStorage(id_factory=id_factory)


@pytest.fixture
def client(storage):
    return TestClient(create_app(storage=storage))


@pytest.fixture
def booking_payload():
    return {
        "patientId": "",
        "testId": "1",
        "preferredDate": "2026-11-02",
        "preferredTime": "09:00",
        "collectionMethod": "home",
        "address": "12 Lake Road, Pune",
        "totalAmount": 45000,
        "patientName": "Asha Rao",
        "patientEmail": "asha@example.com",
        "patientPhone": "9876543210",
        "patientDob": "1990-04-12",
    }
