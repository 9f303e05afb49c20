import logging
import sqlite3
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from medtrack.core.settings import MEDTRACK_DB_PATH, REFILL_INTERVAL_DAYS
from medtrack.db.db_config import get_sqlite_connection
from medtrack.schemas.models import (
    AdherenceCreate,
    AdherenceRecord,
    AdherenceUpdate,
    Medication,
    MedicationCreate,
    MedicationUpdate,
    Prescription,
    PrescriptionCreate,
    PrescriptionUpdate,
)
from medtrack.utils.time_utils import DayLike, day_bounds

logger = logging.getLogger(__name__)

class StoreError(RuntimeError):
    pass

class NotFoundError(StoreError):
    pass

class DuplicateRecordError(StoreError):
    pass

class UnknownPrescriptionError(StoreError):
    """A medication points at a prescription the user does not own."""

class NoRefillsRemainingError(StoreError):
    pass

def _new_id(prefix: str) -> str:
    return prefix + uuid.uuid4().hex[:12]

def _ts(dt: Optional[datetime]) -> Optional[str]:
    # fixed width so TEXT comparison in SQL orders like datetimes
    return dt.isoformat(timespec="microseconds") if dt is not None else None

_MED_COLUMNS = (
    "prescription_id", "name", "dosage", "frequency", "instructions", "purpose", "start_date", "end_date",
    "color", "category", "remaining_doses", "total_doses",
)
_PRESCRIPTION_COLUMNS = (
    "prescribed_by", "prescribed_date", "refills", "refills_remaining", "next_refill_date", "pharmacy",
)
_RECORD_COLUMNS = ("taken_time", "skipped", "notes")

_MED_INSERT = (
    f"INSERT INTO medications (id, user_id, {', '.join(_MED_COLUMNS)}, created_at) "
    f"VALUES ({', '.join('?' * (len(_MED_COLUMNS) + 3))})"
)

_RECORD_SELECT = (
    "SELECT a.*, m.name AS medication_name "
    "FROM adherence_records a JOIN medications m ON m.id = a.medication_id"
)

def _assignments(changes: Dict[str, Any]) -> Tuple[str, List[Any]]:
    values = [_ts(v) if isinstance(v, datetime) else v for v in changes.values()]
    return ", ".join(f"{k} = ?" for k in changes), values

class AdherenceStore:
    """
    SQLite-backed storage for prescriptions, medications and adherence
    records, always scoped to one user. Timestamps are stored as local ISO
    text.

    The connection is shared across request threads; every statement on it
    runs under `_lock`.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_path: Union[str, Path] = MEDTRACK_DB_PATH) -> "AdherenceStore":
        return cls(get_sqlite_connection(db_path))

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _read(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    def _read_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    def _write(self, sql: str, params: Sequence[Any]) -> sqlite3.Cursor:
        with self._lock, self.conn:
            return self.conn.execute(sql, params)

    def _write_many(self, statements: List[Tuple[str, Sequence[Any]]]) -> None:
        """Runs all statements in one transaction."""
        with self._lock, self.conn:
            for sql, params in statements:
                self.conn.execute(sql, params)

    # ---------------------------
    # Medications
    # ---------------------------
    @staticmethod
    def _medication(row: sqlite3.Row) -> Medication:
        return Medication(**dict(row))

    @staticmethod
    def _medication_insert(med: Medication) -> Tuple[str, tuple]:
        values = [_ts(v) if isinstance(v, datetime) else v for v in (getattr(med, c) for c in _MED_COLUMNS)]
        return _MED_INSERT, (med.id, med.user_id, *values, _ts(med.created_at))

    def _check_prescription(self, user_id: str, prescription_id: Optional[str]) -> None:
        if prescription_id is None:
            return
        row = self._read_one("SELECT 1 FROM prescriptions WHERE id = ? AND user_id = ?", (prescription_id, user_id))
        if row is None:
            raise UnknownPrescriptionError(f"prescription {prescription_id} not found")

    def create_medication(self, user_id: str, data: MedicationCreate) -> Medication:
        self._check_prescription(user_id, data.prescription_id)
        med = Medication(id=_new_id("med_"), user_id=user_id, created_at=datetime.now(), **data.model_dump())
        self._write(*self._medication_insert(med))
        return med

    def list_medications(self, user_id: str) -> List[Medication]:
        rows = self._read(
            "SELECT * FROM medications WHERE user_id = ? ORDER BY created_at DESC, rowid DESC", (user_id,)
        )
        return [self._medication(r) for r in rows]

    def list_active_medications(self, user_id: str, day: DayLike) -> List[Medication]:
        start, end = day_bounds(day)
        rows = self._read(
            "SELECT * FROM medications WHERE user_id = ? AND start_date <= ? "
            "AND (end_date IS NULL OR end_date >= ?) ORDER BY created_at, rowid",
            (user_id, _ts(end), _ts(start)),
        )
        return [self._medication(r) for r in rows]

    def get_medication(self, user_id: str, medication_id: str) -> Medication:
        row = self._read_one("SELECT * FROM medications WHERE id = ? AND user_id = ?", (medication_id, user_id))
        if row is None:
            raise NotFoundError(f"medication {medication_id} not found")
        return self._medication(row)

    def update_medication(self, user_id: str, medication_id: str, data: MedicationUpdate) -> Medication:
        self.get_medication(user_id, medication_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in _MED_COLUMNS}
        if "prescription_id" in changes:
            self._check_prescription(user_id, changes["prescription_id"])
        if changes:
            assignments, values = _assignments(changes)
            self._write(
                f"UPDATE medications SET {assignments} WHERE id = ? AND user_id = ?",
                (*values, medication_id, user_id),
            )
        return self.get_medication(user_id, medication_id)

    def delete_medication(self, user_id: str, medication_id: str) -> None:
        cur = self._write("DELETE FROM medications WHERE id = ? AND user_id = ?", (medication_id, user_id))
        if cur.rowcount == 0:
            raise NotFoundError(f"medication {medication_id} not found")

    # ---------------------------
    # Prescriptions
    # ---------------------------
    def _prescriptions(self, rows: List[sqlite3.Row]) -> List[Prescription]:
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        med_rows = self._read(
            f"SELECT * FROM medications WHERE prescription_id IN ({', '.join('?' * len(ids))}) "
            "ORDER BY created_at, rowid",
            ids,
        )
        meds: Dict[str, List[Medication]] = defaultdict(list)
        for m in med_rows:
            meds[m["prescription_id"]].append(self._medication(m))
        return [Prescription(**dict(r), medications=meds[r["id"]]) for r in rows]

    def create_prescription(self, user_id: str, data: PrescriptionCreate) -> Prescription:
        now = datetime.now()
        prescription_id = _new_id("rx_")
        fields = data.model_dump(exclude={"medications"})
        if fields["refills_remaining"] is None:
            fields["refills_remaining"] = fields["refills"]

        values = [_ts(v) if isinstance(v, datetime) else v for v in (fields[c] for c in _PRESCRIPTION_COLUMNS)]
        statements: List[Tuple[str, Sequence[Any]]] = [(
            f"INSERT INTO prescriptions (id, user_id, {', '.join(_PRESCRIPTION_COLUMNS)}, created_at) "
            f"VALUES ({', '.join('?' * (len(_PRESCRIPTION_COLUMNS) + 3))})",
            (prescription_id, user_id, *values, _ts(now)),
        )]
        for item in data.medications:
            med = Medication(
                id=_new_id("med_"),
                user_id=user_id,
                created_at=now,
                **{**item.model_dump(), "prescription_id": prescription_id},
            )
            statements.append(self._medication_insert(med))

        self._write_many(statements)
        return self.get_prescription(user_id, prescription_id)

    def list_prescriptions(self, user_id: str) -> List[Prescription]:
        """Most recently prescribed first, each with its medications."""
        rows = self._read(
            "SELECT * FROM prescriptions WHERE user_id = ? ORDER BY prescribed_date DESC, rowid DESC", (user_id,)
        )
        return self._prescriptions(rows)

    def get_prescription(self, user_id: str, prescription_id: str) -> Prescription:
        row = self._read_one("SELECT * FROM prescriptions WHERE id = ? AND user_id = ?", (prescription_id, user_id))
        if row is None:
            raise NotFoundError(f"prescription {prescription_id} not found")
        return self._prescriptions([row])[0]

    def update_prescription(self, user_id: str, prescription_id: str, data: PrescriptionUpdate) -> Prescription:
        self.get_prescription(user_id, prescription_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in _PRESCRIPTION_COLUMNS}
        if changes:
            assignments, values = _assignments(changes)
            self._write(
                f"UPDATE prescriptions SET {assignments} WHERE id = ? AND user_id = ?",
                (*values, prescription_id, user_id),
            )
        return self.get_prescription(user_id, prescription_id)

    def delete_prescription(self, user_id: str, prescription_id: str) -> None:
        """Its medications, and their adherence records, go with it."""
        cur = self._write("DELETE FROM prescriptions WHERE id = ? AND user_id = ?", (prescription_id, user_id))
        if cur.rowcount == 0:
            raise NotFoundError(f"prescription {prescription_id} not found")

    def refill_prescription(self, user_id: str, prescription_id: str, now: Optional[datetime] = None) -> Prescription:
        """
        Uses up one remaining refill and moves the next refill date
        REFILL_INTERVAL_DAYS past `now`.
        """
        next_refill = (now or datetime.now()) + timedelta(days=REFILL_INTERVAL_DAYS)
        cur = self._write(
            "UPDATE prescriptions SET refills_remaining = refills_remaining - 1, next_refill_date = ? "
            "WHERE id = ? AND user_id = ? AND refills_remaining > 0",
            (_ts(next_refill), prescription_id, user_id),
        )
        if cur.rowcount == 0:
            # raises NotFoundError when the prescription is not the user's
            self.get_prescription(user_id, prescription_id)
            raise NoRefillsRemainingError("No refills remaining for this prescription")
        return self.get_prescription(user_id, prescription_id)

    # ---------------------------
    # Adherence records
    # ---------------------------
    @staticmethod
    def _record(row: sqlite3.Row) -> AdherenceRecord:
        data: Dict[str, Any] = dict(row)
        data["skipped"] = bool(data.get("skipped"))
        return AdherenceRecord(**data)

    def create_record(self, user_id: str, data: AdherenceCreate) -> AdherenceRecord:
        med = self.get_medication(user_id, data.medication_id)
        rec = AdherenceRecord(id=_new_id("adh_"), user_id=user_id, medication_name=med.name, **data.model_dump())
        try:
            self._write(
                "INSERT INTO adherence_records (id, user_id, medication_id, scheduled_time, taken_time, "
                "skipped, notes) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (rec.id, user_id, rec.medication_id, _ts(rec.scheduled_time), _ts(rec.taken_time),
                 int(rec.skipped), rec.notes),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(
                f"adherence record already exists for {rec.medication_id} at {rec.scheduled_time.isoformat()}"
            ) from e
        return rec

    def list_records(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        medication_id: Optional[str] = None,
    ) -> List[AdherenceRecord]:
        """Newest scheduled_time first."""
        clauses = ["a.user_id = ?"]
        params: List[Any] = [user_id]
        if start is not None:
            clauses.append("a.scheduled_time >= ?")
            params.append(_ts(start))
        if end is not None:
            clauses.append("a.scheduled_time <= ?")
            params.append(_ts(end))
        if medication_id:
            clauses.append("a.medication_id = ?")
            params.append(medication_id)

        sql = f"{_RECORD_SELECT} WHERE {' AND '.join(clauses)} ORDER BY a.scheduled_time DESC"
        return [self._record(r) for r in self._read(sql, params)]

    def list_records_for_day(self, user_id: str, day: DayLike) -> List[AdherenceRecord]:
        start, end = day_bounds(day)
        return list(reversed(self.list_records(user_id, start, end)))

    def get_record(self, user_id: str, record_id: str) -> AdherenceRecord:
        row = self._read_one(f"{_RECORD_SELECT} WHERE a.id = ? AND a.user_id = ?", (record_id, user_id))
        if row is None:
            raise NotFoundError(f"adherence record {record_id} not found")
        return self._record(row)

    def update_record(self, user_id: str, record_id: str, data: AdherenceUpdate) -> AdherenceRecord:
        self.get_record(user_id, record_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in _RECORD_COLUMNS}
        if "skipped" in changes:
            # NULL is not a valid flag value
            changes["skipped"] = int(bool(changes["skipped"]))
        if changes:
            assignments, values = _assignments(changes)
            self._write(
                f"UPDATE adherence_records SET {assignments} WHERE id = ? AND user_id = ?",
                (*values, record_id, user_id),
            )
        return self.get_record(user_id, record_id)

_default_store: Optional[AdherenceStore] = None

def get_store() -> AdherenceStore:
    """FastAPI dependency; tests override it with a store on a temp database."""
    global _default_store
    if _default_store is None:
        _default_store = AdherenceStore.open()
        logger.info("Opened adherence store")
    return _default_store
