"""Option data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class OptionInfo:
    """
    A printer option and its legal values.

    Copied from a foreign cpdb_option_t; holds no foreign memory.
    """

    name: str
    """Option name (e.g. 'copies', 'sides')."""

    group: str = ""
    """Option group used by print dialogs to lay out controls."""

    supported_values: Tuple[str, ...] = field(default_factory=tuple)
    """Values the printer accepts, in backend order."""

    default_value: str = ""
    """Backend default, "" when the backend reports none."""

    def supports(self, value: str) -> bool:
        """Check whether value is among the supported values."""
        return value in self.supported_values

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display or JSON export."""
        return {
            "name": self.name,
            "group": self.group,
            "supportedValues": list(self.supported_values),
            "defaultValue": self.default_value,
        }
