from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from medtrack.main import app
from medtrack.schemas.models import AdherenceRecord, Medication
from medtrack.services.adherence_store import AdherenceStore, get_store


@pytest.fixture
def monday():
    return datetime(2024, 3, 4)


@pytest.fixture
def make_medication():
    def _make(frequency: str, **overrides) -> Medication:
        data = {
            "id": "med_1",
            "user_id": "user_1",
            "name": "Metformin",
            "dosage": "500mg",
            "frequency": frequency,
            "start_date": datetime(2024, 3, 1),
        }
        data.update(overrides)
        return Medication(**data)

    return _make


@pytest.fixture
def make_record():
    def _make(scheduled: datetime, taken: bool = False, skipped: bool = False, **overrides) -> AdherenceRecord:
        data = {
            "id": f"adh_{scheduled:%Y%m%d%H%M}",
            "user_id": "user_1",
            "medication_id": "med_1",
            "medication_name": "Metformin",
            "scheduled_time": scheduled,
            "taken_time": scheduled if taken else None,
            "skipped": skipped,
        }
        data.update(overrides)
        return AdherenceRecord(**data)

    return _make


@pytest.fixture
def store(tmp_path):
    s = AdherenceStore.open(tmp_path / "medtrack.db")
    yield s
    s.close()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    return {"X-User-Id": "user_1"}
