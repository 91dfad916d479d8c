"""
Session record persistence as JSON files.
"""
import asyncio
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...interview.models import SessionSnapshot
from ...interview.services import SessionRecorder

logger = logging.getLogger("session_records")


class JsonSessionRecorder(SessionRecorder):
    """Writes one JSON file per finished interview into ``records_dir``."""

    def __init__(self, records_dir: str):
        self.records_dir = records_dir
        os.makedirs(self.records_dir, exist_ok=True)

    def _record_path(self, record_id: str) -> str:
        return os.path.join(self.records_dir, f"{record_id}.json")

    async def save(self, snapshot: SessionSnapshot) -> str:
        """
        Save a finished interview.

        Returns:
            Path of the written record
        """
        record_id = f"interview_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}"
        data = snapshot.to_dict()
        data["record_id"] = record_id
        data["saved_at"] = datetime.now().isoformat()

        path = self._record_path(record_id)
        await asyncio.to_thread(self._write, path, data)
        logger.info(f"Saved session record {record_id}")
        return path

    @staticmethod
    def _write(path: str, data: Dict[str, Any]) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def load(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a saved record, or None if it is missing or unreadable."""
        path = self._record_path(record_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load session record {record_id}: {e}")
            return None

    def list_records(self) -> List[str]:
        """Record ids, oldest first."""
        return sorted(
            filename[:-5] for filename in os.listdir(self.records_dir)
            if filename.endswith('.json')
        )
