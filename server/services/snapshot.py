"""Best-effort JSON snapshot of the full record set.

Written before the first caption mutation so an operator can restore the
previous captions by hand. Never read back by the service.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Union

from core.database import Database
from core.errors import StoreUnavailableError
from core.logging import get_logger

logger = get_logger(__name__)


class SnapshotWriter:
    """Serializes every record to a fixed path, overwriting in place."""

    def __init__(self, database: Database, path: Union[str, Path]):
        self.database = database
        self.path = Path(path)

    async def write_snapshot(self) -> bool:
        """Write the snapshot. Returns False (and logs) on any failure."""
        try:
            records = await self.database.fetch_all()
            payload = json.dumps([record.to_dict() for record in records],
                                 ensure_ascii=False, indent=2)
            await asyncio.to_thread(self._write, payload)
        except StoreUnavailableError as e:
            logger.error("Snapshot skipped, store unavailable", path=str(self.path), error=str(e))
            return False
        except (OSError, TypeError, ValueError) as e:
            logger.error("Snapshot write failed", path=str(self.path),
                         error_type=type(e).__name__, error=str(e))
            return False

        logger.info("Snapshot written", path=str(self.path), records=len(records))
        return True

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self.path)
