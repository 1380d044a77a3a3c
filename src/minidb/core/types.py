"""
Core data types for minidb.

A stored entry maps a string key to a `Value`: who originated the item,
the year it appeared, and whether it is dynamically or statically typed.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Unsigned 16-bit bound for `Value.year`
YEAR_MAX = 0xFFFF


class Classification(str, Enum):
    """Typing discipline of a stored entry."""
    DYNAMIC = "dynamic"
    STATIC = "static"


class Value(BaseModel):
    """
    Immutable value stored under a key.

    Re-inserting a key replaces the whole value; fields are never merged.
    """

    model_config = ConfigDict(frozen=True)

    originator: str = Field(..., description="Person or group that originated the entry")
    year: int = Field(..., ge=0, le=YEAR_MAX, description="Year of origin (u16)")
    classification: Classification = Field(..., description="Dynamic or static")

    def to_payload(self) -> dict[str, Any]:
        """Plain dict used by the log and snapshot codecs."""
        return {
            "originator": self.originator,
            "year": self.year,
            "classification": self.classification.value,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Value":
        return cls(
            originator=payload["originator"],
            year=payload["year"],
            classification=Classification(payload["classification"]),
        )
