from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from medtrack.utils.time_utils import parse_iso, to_local_naive

TimeOfDay = Literal["Morning", "Afternoon", "Evening", "Bedtime"]

def _local_datetime(value: Any) -> Any:
    # everything is kept on the server's local wall clock
    if isinstance(value, str):
        return parse_iso(value)
    if isinstance(value, datetime):
        return to_local_naive(value)
    return value

# ---------------------------
# Frequency rules
# ---------------------------
class OnceDaily(BaseModel):
    kind: Literal["once"] = "once"
    hour: int = Field(default=8, ge=0, le=23)

class TwiceDaily(BaseModel):
    kind: Literal["twice"] = "twice"

class ThriceDaily(BaseModel):
    kind: Literal["thrice"] = "thrice"

class FourTimesDaily(BaseModel):
    kind: Literal["four_times"] = "four_times"

class EveryHours(BaseModel):
    kind: Literal["every_hours"] = "every_hours"
    interval: Optional[int] = Field(default=None, description="Null when no usable N was found.")

class Weekly(BaseModel):
    kind: Literal["weekly"] = "weekly"
    day: Optional[str] = Field(default=None, description="Word after 'on', e.g. 'monday'.")

class Unrecognized(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"

FrequencyRule = Annotated[
    Union[OnceDaily, TwiceDaily, ThriceDaily, FourTimesDaily, EveryHours, Weekly, Unrecognized],
    Field(discriminator="kind"),
]

# ---------------------------
# Medications
# ---------------------------
class MedicationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1, description="Free text, e.g. 'twice daily', 'every 6 hours'")
    instructions: Optional[str] = None
    purpose: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    prescription_id: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    remaining_doses: Optional[int] = Field(default=None, ge=0)
    total_doses: Optional[int] = Field(default=None, ge=0)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

class MedicationUpdate(BaseModel):
    """Partial update; omitted fields stay as they are."""
    name: Optional[str] = Field(default=None, min_length=1)
    dosage: Optional[str] = Field(default=None, min_length=1)
    frequency: Optional[str] = Field(default=None, min_length=1)
    instructions: Optional[str] = None
    purpose: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    prescription_id: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    remaining_doses: Optional[int] = Field(default=None, ge=0)
    total_doses: Optional[int] = Field(default=None, ge=0)

    @field_validator("name", "dosage", "frequency", "start_date", mode="before")
    @classmethod
    def required_not_null(cls, v):
        # these columns are NOT NULL; only an explicit null reaches here
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

class Medication(BaseModel):
    id: str
    user_id: str
    name: str
    dosage: str
    frequency: str
    instructions: Optional[str] = None
    purpose: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    prescription_id: Optional[str] = None
    color: Optional[str] = None
    category: Optional[str] = None
    remaining_doses: Optional[int] = None
    total_doses: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

# ---------------------------
# Prescriptions
# ---------------------------
class PrescriptionCreate(BaseModel):
    prescribed_by: str = Field(..., min_length=1)
    prescribed_date: datetime
    refills: int = Field(default=0, ge=0)
    refills_remaining: Optional[int] = Field(default=None, ge=0, description="Defaults to refills.")
    next_refill_date: Optional[datetime] = None
    pharmacy: Optional[str] = None
    medications: List[MedicationCreate] = Field(default_factory=list)

    @field_validator("prescribed_date", "next_refill_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

class PrescriptionUpdate(BaseModel):
    prescribed_by: Optional[str] = Field(default=None, min_length=1)
    prescribed_date: Optional[datetime] = None
    refills: Optional[int] = Field(default=None, ge=0)
    refills_remaining: Optional[int] = Field(default=None, ge=0)
    next_refill_date: Optional[datetime] = None
    pharmacy: Optional[str] = None

    @field_validator("prescribed_by", "prescribed_date", "refills", "refills_remaining", mode="before")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    @field_validator("prescribed_date", "next_refill_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

class Prescription(BaseModel):
    id: str
    user_id: str
    prescribed_by: str
    prescribed_date: datetime
    refills: int = 0
    refills_remaining: int = 0
    next_refill_date: Optional[datetime] = None
    pharmacy: Optional[str] = None
    created_at: Optional[datetime] = None
    medications: List[Medication] = Field(default_factory=list)

    @field_validator("prescribed_date", "next_refill_date", mode="before")
    @classmethod
    def local_dates(cls, v):
        return _local_datetime(v)

class RefillResult(BaseModel):
    message: str
    prescription: Prescription

# ---------------------------
# Adherence records
# ---------------------------
class AdherenceCreate(BaseModel):
    medication_id: str
    scheduled_time: datetime
    taken_time: Optional[datetime] = None
    skipped: bool = False
    notes: Optional[str] = None

    @field_validator("scheduled_time", "taken_time", mode="before")
    @classmethod
    def local_times(cls, v):
        return _local_datetime(v)

class AdherenceUpdate(BaseModel):
    taken_time: Optional[datetime] = None
    skipped: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("taken_time", mode="before")
    @classmethod
    def local_times(cls, v):
        return _local_datetime(v)

class AdherenceRecord(BaseModel):
    id: str
    user_id: str
    medication_id: str
    scheduled_time: datetime
    taken_time: Optional[datetime] = None
    skipped: bool = False
    notes: Optional[str] = None
    medication_name: Optional[str] = None  # filled when loaded with its medication

    @field_validator("scheduled_time", "taken_time", mode="before")
    @classmethod
    def local_times(cls, v):
        return _local_datetime(v)

    @property
    def resolved(self) -> bool:
        return self.taken_time is not None or self.skipped

# ---------------------------
# Schedule
# ---------------------------
class DoseTime(BaseModel):
    time: datetime
    label: str  # "8AM"

class DoseSlot(BaseModel):
    medication_id: str
    medication_name: str
    dosage: str
    instructions: Optional[str] = None
    time: datetime
    label: str
    adherence_record_id: Optional[str] = None
    taken: bool = False
    skipped: bool = False

# ---------------------------
# Statistics
# ---------------------------
class MedicationAdherence(BaseModel):
    name: str
    total: int
    taken: int
    adherence: int

class TimeOfDayAdherence(BaseModel):
    time: TimeOfDay
    total: int
    taken: int
    adherence: int

class CalendarDay(BaseModel):
    total: int = 0
    taken: int = 0

class Streak(BaseModel):
    current: int = 0
    best: int = 0

class AdherenceStats(BaseModel):
    overall: int = 0
    by_medication: List[MedicationAdherence] = Field(default_factory=list)
    by_time: List[TimeOfDayAdherence] = Field(default_factory=list)
    calendar: Dict[str, CalendarDay] = Field(default_factory=dict)
    streak: Streak = Field(default_factory=Streak)
