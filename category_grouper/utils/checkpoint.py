"""
File-based checkpoints for resumable indexing runs.

A checkpoint is a single JSON document, written to a temporary file and
renamed into place.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from category_grouper.utils.advanced_logging import get_logger
from category_grouper.utils.error_handling import CheckpointError

logger = get_logger(__name__)


class CheckpointStore:
    """Save / load / delete one JSON checkpoint file."""

    def __init__(self, path: str):
        """
        Args:
            path: Checkpoint file path (parent directories are created)
        """
        self.path = Path(path)

    def save(self, checkpoint_data: Dict[str, Any]) -> None:
        """
        Persist checkpoint data.

        Raises:
            CheckpointError: If the file cannot be written
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(checkpoint_data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CheckpointError(
                f"Failed to save checkpoint {self.path}: {e}",
                details={"path": str(self.path)},
            ) from e

        logger.debug("checkpoint_saved", path=str(self.path))

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load checkpoint data.

        Returns:
            Checkpoint data or None if no checkpoint exists

        Raises:
            CheckpointError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(
                f"Failed to load checkpoint {self.path}: {e}",
                details={"path": str(self.path)},
            ) from e

    def delete(self) -> bool:
        """
        Delete the checkpoint.

        Returns:
            True if a checkpoint was deleted
        """
        if not self.path.exists():
            return False

        self.path.unlink()
        logger.debug("checkpoint_deleted", path=str(self.path))
        return True
