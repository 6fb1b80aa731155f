"""Missing-person records and the record stores that persist them.

The matching core only reads ``id`` and ``picture`` from a record; every
other field is metadata for the operators.
"""

from __future__ import annotations

import copy
import json
import os
import re
import tempfile
import threading
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from person_finder.core.errors import PersistenceError
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)

_DATETIME_FIELDS = ("last_seen", "fir_date", "created_at", "updated_at")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Feedback:
    """A note appended to a record by someone who may have seen the person."""

    text: str
    date: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "date": self.date.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Feedback:
        return cls(text=data["text"], date=parse_datetime(data.get("date")) or utcnow())


@dataclass
class PersonRecord:
    """A registered missing person.

    Attributes:
        name: Full name
        age: Age in years
        last_seen: When the person was last seen
        details: Free-text description
        phone_number: Contact number of the reporting family
        picture: Blob reference of the registered photo, if any
        state: State of the last known location
        city: City of the last known location
        address: Address of the last known location
        police_station: Police station handling the case
        fir_date: Date the First Information Report was filed
        fir_case_number: FIR case number
        officer_in_charge_number: Contact number of the officer in charge
        is_found: Whether the person has been found
        feedback: Appended feedback notes, oldest first
        id: Identifier generated by the store
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    name: str
    age: Optional[int] = None
    last_seen: Optional[datetime] = None
    details: Optional[str] = None
    phone_number: Optional[str] = None
    picture: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    police_station: Optional[str] = None
    fir_date: Optional[datetime] = None
    fir_case_number: Optional[str] = None
    officer_in_charge_number: Optional[str] = None
    is_found: bool = False
    feedback: List[Feedback] = field(default_factory=list)
    id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def has_image(self) -> bool:
        return bool(self.picture)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict with ISO-8601 datetimes."""
        data = asdict(self)
        for key in _DATETIME_FIELDS:
            value = getattr(self, key)
            data[key] = value.isoformat() if value is not None else None
        data["feedback"] = [fb.to_dict() for fb in self.feedback]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PersonRecord:
        """Build a record from ``to_dict`` output; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        for key in _DATETIME_FIELDS:
            if key in kwargs:
                kwargs[key] = parse_datetime(kwargs[key])
        for key in ("created_at", "updated_at"):
            if kwargs.get(key) is None:
                kwargs.pop(key, None)
        if kwargs.get("age") not in (None, ""):
            kwargs["age"] = int(kwargs["age"])
        kwargs["feedback"] = [Feedback.from_dict(fb) for fb in data.get("feedback") or []]
        return cls(**kwargs)

    def __repr__(self) -> str:
        return f"PersonRecord(id={self.id!r}, name={self.name!r}, is_found={self.is_found})"


@dataclass
class RecordQuery:
    """Filter for record lookups. Unset fields match everything.

    Attributes:
        name: Case-insensitive regular expression searched in the name.
            An invalid pattern is matched literally.
        age: Exact age
        state: Exact state
        city: Exact city
        is_found: Found flag
        has_image: Whether a photo is registered
    """

    name: Optional[str] = None
    age: Optional[int] = None
    state: Optional[str] = None
    city: Optional[str] = None
    is_found: Optional[bool] = None
    has_image: Optional[bool] = None

    def _name_pattern(self) -> Optional[re.Pattern]:
        if not self.name:
            return None
        try:
            return re.compile(self.name, re.IGNORECASE)
        except re.error:
            return re.compile(re.escape(self.name), re.IGNORECASE)

    def matches(self, record: PersonRecord) -> bool:
        pattern = self._name_pattern()
        if pattern is not None and not pattern.search(record.name or ""):
            return False
        if self.age is not None and record.age != self.age:
            return False
        if self.state and record.state != self.state:
            return False
        if self.city and record.city != self.city:
            return False
        if self.is_found is not None and record.is_found != self.is_found:
            return False
        if self.has_image is not None and record.has_image != self.has_image:
            return False
        return True


@runtime_checkable
class RecordStore(Protocol):
    """Persistence of person records.

    ``find`` returns records in insertion order; the matcher relies on this
    being stable between calls.
    """

    def create(self, record: PersonRecord) -> str:
        ...

    def find(self, query: Optional[RecordQuery] = None) -> List[PersonRecord]:
        ...

    def find_by_id(self, record_id: str) -> Optional[PersonRecord]:
        ...

    def save(self, record: PersonRecord) -> None:
        ...

    def delete(self, record_id: str) -> bool:
        ...

    def count(self, query: Optional[RecordQuery] = None) -> int:
        ...


class InMemoryRecordStore:
    """Record store kept in a dict; records are copied in and out.

    Example:
        >>> store = InMemoryRecordStore()
        >>> record_id = store.create(PersonRecord(name="Asha"))
        >>> store.find_by_id(record_id).name
        'Asha'
    """

    def __init__(self) -> None:
        self._records: Dict[str, PersonRecord] = {}
        self._lock = threading.RLock()

    def create(self, record: PersonRecord) -> str:
        with self._lock:
            record_id = record.id or uuid.uuid4().hex
            if record_id in self._records:
                raise PersistenceError(f"Duplicate record id: {record_id}")
            stored = copy.deepcopy(record)
            stored.id = record_id
            snapshot = dict(self._records)
            self._records[record_id] = stored
            self._commit(snapshot)
            record.id = record_id
        logger.debug(f"Created record {record_id}")
        return record_id

    def find(self, query: Optional[RecordQuery] = None) -> List[PersonRecord]:
        query = query or RecordQuery()
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values() if query.matches(r)]

    def find_by_id(self, record_id: str) -> Optional[PersonRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def save(self, record: PersonRecord) -> None:
        """Replace a stored record; ``updated_at`` is set once the write commits."""
        if record.id is None:
            raise PersistenceError("Cannot save a record without an id")
        with self._lock:
            if record.id not in self._records:
                raise PersistenceError(f"Cannot save unknown record: {record.id}")
            stored = copy.deepcopy(record)
            stored.updated_at = utcnow()
            snapshot = dict(self._records)
            self._records[record.id] = stored
            self._commit(snapshot)
            record.updated_at = stored.updated_at

    def delete(self, record_id: str) -> bool:
        with self._lock:
            if record_id not in self._records:
                return False
            snapshot = dict(self._records)
            del self._records[record_id]
            self._commit(snapshot)
        logger.debug(f"Deleted record {record_id}")
        return True

    def count(self, query: Optional[RecordQuery] = None) -> int:
        query = query or RecordQuery()
        with self._lock:
            return sum(1 for r in self._records.values() if query.matches(r))

    def _commit(self, snapshot: Dict[str, PersonRecord]) -> None:
        """Persist the current state, restoring ``snapshot`` (contents and order) on failure."""
        try:
            self._persist()
        except PersistenceError:
            self._records = snapshot
            raise

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(records={len(self)})"


class JsonRecordStore(InMemoryRecordStore):
    """Record store persisted to a JSON file after every write.

    Writes go to a temporary file that replaces the target atomically.

    Attributes:
        path: JSON file holding the list of records
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.info(f"No records file at {self.path}, starting empty")
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            records = [PersonRecord.from_dict(item) for item in payload]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Could not read records from {self.path}: {e}") from e

        self._records = {r.id: r for r in records if r.id}
        logger.info(f"Loaded {len(self._records)} records from {self.path}")

    def _persist(self) -> None:
        payload = [r.to_dict() for r in self._records.values()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write records to {self.path}: {e}") from e
