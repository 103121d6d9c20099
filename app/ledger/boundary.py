import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from app.ledger.models import ResetBoundary

logger = logging.getLogger(__name__)


class BoundaryStore:
    """Keeps the dashboard's reset boundary in a small JSON file next to the client."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> ResetBoundary:
        if not self.path.exists():
            return ResetBoundary()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            boundary = ResetBoundary.model_validate(data.get("boundary") or {})
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable dashboard state {self.path}: {e}")
            return ResetBoundary()

        logger.info(f"Loaded reset boundary {boundary.reset_at} from {self.path}")
        return boundary

    def save(self, boundary: ResetBoundary):
        payload = {"boundary": boundary.model_dump(mode="json")}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved reset boundary to {self.path}")
