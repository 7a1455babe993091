"""
Scope: variables and user-defined functions for one document evaluation.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from flownote.values import UNDEFINED


@dataclass
class UserFunction:
    """A user-defined function, stored with its body for later evaluation."""
    params: list[str]
    body: str


@dataclass
class Scope:
    """
    Variables and functions defined while evaluating a document.

    Variables may be nested through dot-paths: ``hotel.perNight = 180``
    creates ``{"hotel": {"perNight": 180}}``.
    """
    variables: dict[str, Any] = field(default_factory=dict)
    functions: dict[str, UserFunction] = field(default_factory=dict)

    def set_variable(self, path: str, value: Any):
        """
        Set a variable value, supporting dot notation.

        Intermediate segments that hold anything other than a dict are
        replaced with a new dict, discarding the old value.

        Args:
            path: Variable name or dot-path, e.g. ``hotel.perNight``
            value: Value to store
        """
        parts = path.split(".")

        if len(parts) == 1:
            self.variables[path] = value
            return

        current = self.variables
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value

    def get_variable(self, path: str) -> Any:
        """Get a variable value, supporting dot notation. Missing paths give UNDEFINED."""
        current: Any = self.variables
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return UNDEFINED
            current = current[part]
        return current

    def define_function(self, name: str, params: list[str], body: str):
        """Define a user function; a later definition of the same name replaces it."""
        self.functions[name] = UserFunction(params=list(params), body=body)

    def get_function(self, name: str) -> Optional[UserFunction]:
        return self.functions.get(name)

    def get_top_level_variables(self) -> dict[str, Any]:
        """Shallow copy of the top-level variables. Nested dicts are shared."""
        return dict(self.variables)

    def defined_names(self) -> list[str]:
        """Names of all variables and functions, variables first."""
        return list(self.variables) + [n for n in self.functions if n not in self.variables]
