"""
GlobalsStore: persists global variables shared by every document.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from flownote.utils import is_valid_variable_name
from flownote.values import to_jsonable

logger = logging.getLogger(__name__)


class GlobalsStore:
    """
    Global variables (named constants) stored as a JSON file.

    The stored values are passed to every document evaluation as external
    variables; a document can shadow them with its own assignments.

    File layout::

        {"variables": {"taxRate": 0.08}, "saved_at": "2026-01-01T12:00:00"}
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            path: JSON file holding the variables
        """
        self.path = Path(path) if path else Path.home() / ".flownote" / "globals.json"

    def load(self) -> dict[str, Any]:
        """
        Load all global variables.

        Returns an empty dict when the file does not exist yet.

        Raises:
            ValueError: if the file is not a valid globals file
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid globals file {self.path}: {e}") from e

        variables = data.get("variables") if isinstance(data, dict) else None
        if not isinstance(variables, dict):
            raise ValueError(f"Invalid globals file {self.path}: missing 'variables' object")
        return variables

    def save(self, variables: dict[str, Any]) -> Path:
        """Replace all global variables."""
        for name in variables:
            self._check_name(name)

        state = {
            "variables": to_jsonable(variables),
            "saved_at": datetime.now().isoformat(),
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(state, f, indent=2)

        logger.debug("Saved %d global variable(s) to %s", len(variables), self.path)
        return self.path

    def set(self, name: str, value: Any):
        """Set a single global variable."""
        self._check_name(name)
        variables = self.load()
        variables[name] = value
        self.save(variables)

    def delete(self, name: str) -> bool:
        """Delete a single global variable. Returns False if it did not exist."""
        variables = self.load()
        if name not in variables:
            return False
        del variables[name]
        self.save(variables)
        return True

    def list(self) -> list[tuple[str, Any]]:
        """All global variables sorted by name."""
        return sorted(self.load().items())

    @staticmethod
    def _check_name(name: str):
        if not is_valid_variable_name(name):
            raise ValueError(f"Invalid variable name: {name!r}")
