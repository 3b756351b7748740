"""Per-certificate memory of the last successful dispatch, used to suppress re-fires within one period."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol

from schemas.alerting import AlertModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchRecord:
    timestamp: str
    schedule_type: str
    schedule_time: Optional[str] = None


class DispatchStore(Protocol):
    def get(self, certificate_id: str) -> Optional[DispatchRecord]: ...

    def put(self, certificate_id: str, record: DispatchRecord) -> None: ...

    def discard(self, certificate_id: str) -> None: ...


class InMemoryDispatchStore:
    """Process-local store; state is lost on restart."""

    def __init__(self) -> None:
        self._records: Dict[str, DispatchRecord] = {}

    def get(self, certificate_id: str) -> Optional[DispatchRecord]:
        return self._records.get(certificate_id)

    def put(self, certificate_id: str, record: DispatchRecord) -> None:
        self._records[certificate_id] = record

    def discard(self, certificate_id: str) -> None:
        self._records.pop(certificate_id, None)

    def __len__(self) -> int:
        return len(self._records)


class JsonFileDispatchStore:
    """Dispatch records persisted to a small JSON document so restarts keep dedup state."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._cache: Optional[Dict[str, DispatchRecord]] = None

    def _load(self) -> Dict[str, DispatchRecord]:
        if self._cache is not None:
            return self._cache
        records: Dict[str, DispatchRecord] = {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
            entries = payload.get("dispatches", {})
            if not isinstance(entries, Mapping):
                raise ValueError("dispatches is not an object")
        except FileNotFoundError:
            entries = {}
        except (OSError, json.JSONDecodeError, ValueError, AttributeError) as exc:
            logger.warning("Failed to load dispatch state from %s: %s", self._path, exc)
            entries = {}
        for certificate_id, raw in entries.items():
            if not isinstance(raw, Mapping):
                continue
            records[str(certificate_id)] = DispatchRecord(
                timestamp=str(raw.get("timestamp") or ""),
                schedule_type=str(raw.get("schedule_type") or ""),
                schedule_time=raw.get("schedule_time"),
            )
        self._cache = records
        return records

    def _flush(self) -> None:
        records = self._load()
        payload = {"dispatches": {key: asdict(value) for key, value in records.items()}}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, certificate_id: str) -> Optional[DispatchRecord]:
        return self._load().get(certificate_id)

    def put(self, certificate_id: str, record: DispatchRecord) -> None:
        self._load()[certificate_id] = record
        self._flush()

    def discard(self, certificate_id: str) -> None:
        if self._load().pop(certificate_id, None) is not None:
            self._flush()


class DispatchTracker:
    """
    Decides whether a certificate already received its notification for the
    current schedule period.

    The comparison includes the schedule signature (type and, for daily
    models, the exact ``schedule_time``), so editing a model lets it fire
    again right away.
    """

    def __init__(self, store: Optional[DispatchStore] = None) -> None:
        self._store: DispatchStore = store if store is not None else InMemoryDispatchStore()

    @property
    def store(self) -> DispatchStore:
        return self._store

    def already_dispatched(self, certificate_id: str, model: AlertModel, tick: datetime) -> bool:
        record = self._store.get(certificate_id)
        if record is None:
            return False

        last_dispatch = _parse_timestamp(record.timestamp)
        if last_dispatch is None:
            logger.warning("Discarding unreadable dispatch record (certificate=%s)", certificate_id)
            self._store.discard(certificate_id)
            return False
        if tick.tzinfo is not None:
            last_dispatch = last_dispatch.astimezone(tick.tzinfo)

        if model.schedule_type == "hourly":
            if record.schedule_type != "hourly":
                return False
            return (last_dispatch.date(), last_dispatch.hour) == (tick.date(), tick.hour)

        if model.schedule_type == "daily":
            if record.schedule_type != "daily":
                return False
            if not model.schedule_time or record.schedule_time != model.schedule_time:
                return False
            return last_dispatch.date() == tick.date()

        return False

    def mark_dispatched(self, certificate_id: str, model: AlertModel, tick: datetime) -> None:
        self._store.put(
            certificate_id,
            DispatchRecord(
                timestamp=tick.isoformat(),
                schedule_type=model.schedule_type,
                schedule_time=model.schedule_time if model.schedule_type == "daily" else None,
            ),
        )

    def last_dispatch(self, certificate_id: str) -> Optional[DispatchRecord]:
        return self._store.get(certificate_id)


def _parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


__all__ = [
    "DispatchRecord",
    "DispatchStore",
    "DispatchTracker",
    "InMemoryDispatchStore",
    "JsonFileDispatchStore",
]
