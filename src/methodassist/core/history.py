"""History of generated tasks."""

import json
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from methodassist.core.logging import get_logger
from methodassist.schemas.task import GeneratedTask, Stage, TaskRecord

logger = get_logger("methodassist.history")

_RECORD_ID = re.compile(r"[0-9A-Za-z_]+")


class TaskHistory:
    """Stores generated tasks as one JSON file per record."""

    def __init__(self, history_dir: Path):
        """Initialize history with directory."""
        self.history_dir = Path(history_dir)
        self.history_dir.mkdir(parents=True, exist_ok=True)

    def record(self, goal: str, stage: Stage, task: GeneratedTask) -> TaskRecord:
        """Create and save a record."""
        created_at = datetime.now(timezone.utc)
        record_id = f"{created_at.strftime('%Y%m%d_%H%M%S_%f')}_{uuid.uuid4().hex[:8]}"
        record = TaskRecord(
            record_id=record_id,
            stage=stage,
            goal=goal,
            task=task,
            created_at=created_at,
        )
        record_file = self.history_dir / f"{record_id}.json"
        record_file.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        return record

    def get(self, record_id: str) -> Optional[TaskRecord]:
        """Load one record by id, or None if there is no such record."""
        if not _RECORD_ID.fullmatch(record_id):
            return None
        record_file = self.history_dir / f"{record_id}.json"
        if not record_file.exists():
            return None
        return self._load(record_file)

    def _load(self, record_file: Path) -> Optional[TaskRecord]:
        try:
            data = json.loads(record_file.read_text(encoding="utf-8"))
            return TaskRecord.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Skipping unreadable history record {record_file.name}: {e}")
            return None

    def recent(self, limit: int = 10, stage: Optional[Stage] = None) -> list[TaskRecord]:
        """List records, newest first."""
        records = []
        for record_file in self.history_dir.glob("*.json"):
            record = self._load(record_file)
            if record is None:
                continue
            if stage is not None and record.stage != stage:
                continue
            records.append(record)

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def clear(self) -> int:
        """Delete all records, returning how many were removed."""
        deleted = 0
        for record_file in self.history_dir.glob("*.json"):
            record_file.unlink(missing_ok=True)
            deleted += 1
        return deleted
