"""Backup and restore of the whole local store."""
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Union

from lexibook.config import CHECKIN_KEY, REVIEW_SCHEDULE_KEY, VOCAB_KEY, WRONG_QUESTIONS_KEY
from lexibook.errors import ValidationError
from lexibook.storage import KeyValueStore, decode_value, encode_value

logger = logging.getLogger(__name__)


class DataManager:
    """Exports the local store to a JSON file and restores it from one."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get_all_data(self) -> Dict[str, Any]:
        """Every local key, values JSON-decoded where possible."""
        return {key: decode_value(value) for key, value in self.store.items()}

    def export_data(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write a pretty-printed backup file and return its path."""
        if path is None:
            path = Path(f"english-learning-backup-{date.today().isoformat()}.json")
        path = Path(path)
        path.write_text(
            json.dumps(self.get_all_data(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.info("Exported local data to %s", path)
        return path

    def import_data(self, path: Union[str, Path]) -> int:
        """Replace the local store with a backup. Returns the number of keys restored.

        A file that is not a JSON object is rejected before anything is
        cleared.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ValidationError(f"Import failed: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("Import failed: backup must be a JSON object")

        items = {key: encode_value(value) for key, value in data.items()}
        self.store.replace_all(items)
        logger.info("Imported %d keys from %s", len(items), path)
        return len(items)

    def get_data_stats(self) -> Dict[str, int]:
        """Key count and the size of the main collections."""
        data = self.get_all_data()

        def size(key: str) -> int:
            value = data.get(key)
            return len(value) if isinstance(value, list) else 0

        return {
            "totalKeys": len(data),
            "vocabCount": size(VOCAB_KEY),
            "reviewCount": size(REVIEW_SCHEDULE_KEY),
            "wrongQuestionCount": size(WRONG_QUESTIONS_KEY),
            "checkInDays": size(CHECKIN_KEY),
        }
