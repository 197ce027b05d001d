"""
Call context threaded through every governance operation.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class CallContext:
    """
    Who is calling and at which ledger height.

    Both values are supplied by the host for each operation; the DAO
    never stores them.
    """
    caller: str
    height: int

    def __post_init__(self):
        if not self.caller:
            raise ValueError("Caller identity is required")
        if self.height < 0:
            raise ValueError(f"Ledger height cannot be negative, got {self.height}")

    def at(self, height: int) -> "CallContext":
        """Same caller, different height."""
        return CallContext(caller=self.caller, height=height)

    def as_caller(self, caller: str) -> "CallContext":
        """Same height, different caller."""
        return CallContext(caller=caller, height=self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {"caller": self.caller, "height": self.height}
