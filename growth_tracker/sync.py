"""Remote-first orchestration with a local fallback.

Each operation moves ``IDLE -> REQUESTING -> SUCCESS | FALLBACK`` and ends in
``FAILED`` only when the local path fails too. A fallback result is always a
complete local recomputation, never a mix of remote and local data. Remote
reads overwrite the local cache; they are never merged into it.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .age import parse_date, validate_birth_date, validate_measurement_date
from .classify import interpret
from .errors import GrowthTrackerError, InvalidDateError, NotFoundError, ValidationError
from .models import Gender, GrowthChart, GrowthRecord, Metric
from .records import validate_measurement
from .remote import RemoteClient
from .stats import aggregate
from .storage import (NIK_FORMAT_MESSAGE, NIK_TAKEN_MESSAGE, LocalStorageService,
                      is_valid_nik)
from .who_reference import WHOReference, get_who_reference

logger = logging.getLogger(__name__)

REMOTE = "remote"
LOCAL = "local"

# Backend answers that reject the input itself; these must not be retried locally.
REJECTION_STATUSES = (400, 409, 422)


class SyncState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    data: Any
    source: str


@dataclass(frozen=True)
class RequestTicket:
    child_id: int
    generation: int


class RequestTracker:
    """Generation counter for child selection; late answers for old tickets are dropped."""

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._current: Optional[RequestTicket] = None

    def begin(self, child_id: int) -> RequestTicket:
        with self._lock:
            self._generation += 1
            self._current = RequestTicket(child_id, self._generation)
            return self._current

    def is_current(self, ticket: RequestTicket) -> bool:
        with self._lock:
            return self._current == ticket


@dataclass(frozen=True)
class ChildView:
    child_id: int
    records: List[GrowthRecord]
    stats: Any
    chart: GrowthChart
    sources: Dict[str, str] = field(default_factory=dict)
    latest_status: Dict[str, Any] = field(default_factory=dict)
    average_status: Dict[str, Any] = field(default_factory=dict)


def _sorted_by_date(records):
    return sorted(records, key=lambda r: parse_date(r.date))


class SyncService:
    def __init__(self, remote: RemoteClient, local: LocalStorageService,
                 reference: Optional[WHOReference] = None,
                 today: Callable[[], date] = date.today):
        self.remote = remote
        self.local = local
        self.reference = reference
        if local.reference is None:
            local.reference = reference
        self.today = today
        self.tracker = RequestTracker()
        self.states: Dict[str, SyncState] = {}
        self.history: Dict[str, List[SyncState]] = {}

    def _who(self) -> WHOReference:
        return self.reference or get_who_reference()

    def _transition(self, operation: str, state: SyncState) -> None:
        self.states[operation] = state
        self.history.setdefault(operation, []).append(state)

    def _cache(self, operation: str, write: Callable[[], None]) -> None:
        try:
            write()
        except GrowthTrackerError as e:
            logger.warning("%s: could not cache remote result locally: %s", operation, e)

    def _run(self, operation: str, remote_call, local_call, on_success=None) -> SyncResult:
        self.history[operation] = [SyncState.IDLE]
        self._transition(operation, SyncState.REQUESTING)
        result = remote_call()
        if result.ok:
            if on_success is not None:
                self._cache(operation, lambda: on_success(result.value))
            self._transition(operation, SyncState.SUCCESS)
            return SyncResult(result.value, REMOTE)

        logger.info("%s: remote unavailable (%s), using local data", operation, result.error)
        self._transition(operation, SyncState.FALLBACK)
        try:
            value = local_call()
        except GrowthTrackerError:
            self._transition(operation, SyncState.FAILED)
            raise
        return SyncResult(value, LOCAL)

    # ----- reads -----

    def fetch_children(self) -> SyncResult:
        return self._run(
            "fetch-children",
            self.remote.get_children,
            self.local.get_children,
            on_success=self.local.replace_children,
        )

    def _local_records(self, child_id: int) -> List[GrowthRecord]:
        records = self.local.get_growth_records(child_id)
        if not records and self.local.get_child_by_id(child_id) is None:
            raise NotFoundError(f"Data anak dengan id {child_id} tidak ditemukan")
        return records

    def fetch_records(self, child_id: int) -> SyncResult:
        return self._run(
            "fetch-records",
            lambda: self.remote.get_growth_records(child_id),
            lambda: self._local_records(child_id),
            on_success=lambda records: self.local.replace_growth_records(
                child_id, _sorted_by_date(records)),
        )

    def fetch_stats(self, child_id: int) -> SyncResult:
        return self._run(
            "fetch-stats",
            lambda: self.remote.get_growth_stats(child_id),
            lambda: aggregate(self._local_records(child_id)),
        )

    def _local_chart(self, child_id: int) -> GrowthChart:
        child = self.local.get_child_by_id(child_id)
        if child is None:
            raise NotFoundError(f"Data anak dengan id {child_id} tidak ditemukan")
        records = self.local.get_growth_records(child_id)
        return GrowthChart(records=tuple(records),
                           who_curves=tuple(self._who().curves(Metric.HEIGHT, child.gender)))

    def fetch_chart(self, child_id: int) -> SyncResult:
        return self._run(
            "fetch-chart",
            lambda: self.remote.get_growth_chart(child_id),
            lambda: self._local_chart(child_id),
            on_success=lambda chart: self.local.replace_growth_records(
                child_id, _sorted_by_date(chart.records)),
        )

    def fetch_parents(self, query: Optional[str] = None, limit: int = 20) -> SyncResult:
        def cache(parents):
            if not query:
                self.local.replace_parents(parents)

        return self._run(
            "fetch-parents",
            lambda: self.remote.get_parents(query, limit),
            lambda: self.local.get_parents(query)[:max(limit, 1)],
            on_success=cache,
        )

    def select_child(self, child_id: int) -> Optional[ChildView]:
        """Load everything shown for one child; None if another child was selected meanwhile."""
        ticket = self.tracker.begin(child_id)
        records = self.fetch_records(child_id)
        stats = self.fetch_stats(child_id)
        chart = self.fetch_chart(child_id)
        if not self.tracker.is_current(ticket):
            logger.debug("Discarding stale results for child %s (generation %s)",
                         child_id, ticket.generation)
            return None
        history = list(records.data)
        latest_z = history[-1].height_z_score if history else None
        # the stats sentinel is 0 when no record has a Z-score
        has_z = any(r.height_z_score is not None for r in history)
        average_z = stats.data.average.height_z_score if has_z else None
        return ChildView(
            child_id=child_id,
            records=history,
            stats=stats.data,
            chart=chart.data,
            sources={"records": records.source, "stats": stats.source, "chart": chart.source},
            latest_status=interpret(Metric.HEIGHT, latest_z),
            average_status=interpret(Metric.HEIGHT, average_z),
        )

    # ----- writes -----

    def add_record(self, child_id: int, measured_on, height, weight,
                   head_circumference=None, input_by=None) -> SyncResult:
        today = self.today()
        height, weight, head_circumference = validate_measurement(height, weight, head_circumference)
        measured = parse_date(measured_on, "tanggal pengukuran")
        if measured > today:
            raise InvalidDateError("Tanggal pengukuran tidak boleh di masa depan")
        child = self.local.get_child_by_id(child_id)
        if child is not None:
            validate_measurement_date(child.dob, measured, today=today)

        payload = {"date": measured.isoformat(), "height": height, "weight": weight}
        if head_circumference is not None:
            payload["headCircumference"] = head_circumference

        def cache(record: GrowthRecord):
            records = self.local.get_growth_records(child_id) + [record]
            self.local.replace_growth_records(child_id, _sorted_by_date(records))

        return self._run(
            "add-record",
            lambda: self.remote.add_growth_record(child_id, payload),
            lambda: self.local.add_growth_record(child_id, measured, height, weight,
                                                 head_circumference=head_circumference,
                                                 input_by=input_by, today=today),
            on_success=cache,
        )

    def add_child(self, name: str, dob, nik: str, gender, user_id: Optional[int]) -> SyncResult:
        name = (name or "").strip()
        nik = (nik or "").strip()
        if not name:
            raise ValidationError("Nama anak harus diisi")
        if not dob:
            raise ValidationError("Tanggal lahir harus diisi")
        born = validate_birth_date(dob, today=self.today())
        if not is_valid_nik(nik):
            raise ValidationError(NIK_FORMAT_MESSAGE)
        try:
            gender = Gender.parse(gender)
        except ValueError as e:
            raise ValidationError("Jenis kelamin harus dipilih") from e
        if not user_id:
            raise ValidationError("Orang tua harus dipilih")

        payload = {"name": name, "dob": born.isoformat(), "nik": nik,
                   "gender": gender.value, "userId": int(user_id)}
        operation = "add-child"
        self.history[operation] = [SyncState.IDLE]
        self._transition(operation, SyncState.REQUESTING)
        result = self.remote.add_child(payload)
        if result.ok:
            self._cache(operation, lambda: self.local.cache_child(result.value))
            self._transition(operation, SyncState.SUCCESS)
            return SyncResult(result.value, REMOTE)
        if result.error.status_code in REJECTION_STATUSES:
            self._transition(operation, SyncState.FAILED)
            raise ValidationError(result.error.server_message)

        logger.info("%s: remote unavailable (%s), creating child locally", operation, result.error)
        self._transition(operation, SyncState.FALLBACK)
        try:
            child = self.local.add_child(name, born.isoformat(), nik, gender, int(user_id))
        except GrowthTrackerError:
            self._transition(operation, SyncState.FAILED)
            raise
        return SyncResult(child, LOCAL)

    # ----- utilities -----

    def validate_nik(self, nik) -> SyncResult:
        if not is_valid_nik(nik):
            return SyncResult({"available": False, "message": NIK_FORMAT_MESSAGE}, LOCAL)

        result = self.remote.validate_nik(nik)
        if result.ok:
            return SyncResult(result.value, REMOTE)
        if result.error.status_code == 409:
            return SyncResult({"available": False, "message": NIK_TAKEN_MESSAGE}, REMOTE)
        if result.error.status_code == 404:
            return SyncResult(
                {"available": True, "message": "NIK tersedia (validasi tidak tersedia)"}, REMOTE)
        logger.info("validate-nik: remote unavailable (%s), checking local data", result.error)
        return SyncResult(self.local.validate_nik(nik), LOCAL)

    def is_online(self) -> bool:
        return self.remote.health().ok
