"""Urge and success records logged by guided conversations."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError

from habit_coach.memory.storage import KeyValueStore
from habit_coach.models.guided import SuccessRecord, UrgeRecord

logger = logging.getLogger(__name__)

RECORDS_KEY = "stopshorts-ai-store"
DEFAULT_MAX_RECORDS = 100


class _RecordsBlob(BaseModel):
    urge_records: list[UrgeRecord] = Field(default_factory=list)
    success_records: list[SuccessRecord] = Field(default_factory=list)


class RecordsLog:
    """Bounded logs persisted as one plain blob; the newest records are kept."""

    def __init__(self, store: KeyValueStore, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._store = store
        self._max_records = max_records
        self._blob = _RecordsBlob()

    @property
    def urge_records(self) -> list[UrgeRecord]:
        return list(self._blob.urge_records)

    @property
    def success_records(self) -> list[SuccessRecord]:
        return list(self._blob.success_records)

    def add_urge_record(self, intensity: int, trigger: str = "", feeling: str = "") -> UrgeRecord:
        record = UrgeRecord(intensity=intensity, trigger=trigger, feeling=feeling)
        self._blob.urge_records = (self._blob.urge_records + [record])[-self._max_records :]
        return record

    def add_success_record(self, method: str = "", feeling: str = "", tip: str = "") -> SuccessRecord:
        record = SuccessRecord(method=method, feeling=feeling, tip=tip)
        self._blob.success_records = (self._blob.success_records + [record])[-self._max_records :]
        return record

    async def load(self) -> None:
        try:
            raw = await self._store.get_item(RECORDS_KEY)
        except Exception:
            logger.exception("Error loading records")
            return
        if not raw:
            return
        try:
            self._blob = _RecordsBlob.model_validate_json(raw)
        except ValidationError:
            logger.exception("Stored records are corrupt - starting empty")
            self._blob = _RecordsBlob()

    async def save(self) -> None:
        try:
            await self._store.set_item(RECORDS_KEY, self._blob.model_dump_json())
        except Exception:
            logger.exception("Error saving records")
