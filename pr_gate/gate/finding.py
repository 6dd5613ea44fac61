# AGPL-3.0 License

"""
Finding data structures.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    """
    Severity of a finding, ordered from least to most serious.
    """

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    BLOCKER = "blocker"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def at_least(self, other: "Severity") -> bool:
        """True if this severity is the same as or more serious than ``other``."""
        return self.rank >= other.rank

    @classmethod
    def from_string(cls, value: str) -> "Severity":
        """
        Create Severity from string.

        Args:
            value: String representation (case-insensitive)

        Returns:
            Severity enum value

        Raises:
            ValueError: If value doesn't match any severity
        """
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = [s.value for s in cls]
            raise ValueError(f"Invalid severity '{value}'. Valid severities: {valid}")

    def __str__(self) -> str:
        return self.value


_SEVERITY_ORDER = [Severity.INFO, Severity.WARNING, Severity.ERROR, Severity.BLOCKER]


@dataclass(frozen=True)
class Location:
    """
    Position of a finding in the changed code.

    Line numbers refer to the head revision; both are optional so a finding
    can point at a whole file.
    """
    file_path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.file_path, str) or not self.file_path:
            raise ValueError(f"Invalid file path {self.file_path!r}")
        for name in ("start_line", "end_line"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
                raise ValueError(f"Invalid {name} {value!r} for {self.file_path}, expected a positive integer")
        if self.start_line is None and self.end_line is not None:
            raise ValueError(f"end_line without start_line for {self.file_path}")
        if self.start_line is not None and self.end_line is None:
            object.__setattr__(self, "end_line", self.start_line)
        if self.start_line is not None and self.end_line < self.start_line:
            raise ValueError(f"Invalid line range {self.start_line}-{self.end_line} for {self.file_path}")

    def __str__(self) -> str:
        if self.start_line is None:
            return self.file_path
        if self.end_line == self.start_line:
            return f"{self.file_path}:{self.start_line}"
        return f"{self.file_path}:{self.start_line}-{self.end_line}"

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        return cls(
            file_path=data["file_path"],
            start_line=data.get("start_line"),
            end_line=data.get("end_line"),
        )


@dataclass(frozen=True)
class Finding:
    """
    One issue reported by a rule.

    Findings are immutable; use ``with_changes`` to derive a corrected copy.
    """

    rule_id: str
    severity: Severity
    message: str
    location: Optional[Location] = None
    suggestion: Optional[str] = None

    def with_changes(self, **changes) -> "Finding":
        """Return a new Finding with the given fields replaced."""
        return replace(self, **changes)

    def sort_key(self) -> tuple:
        """Location-then-severity key used to order findings of one rule."""
        if self.location is None:
            location_key = ("", -1, -1)
        else:
            location_key = (
                self.location.file_path,
                self.location.start_line if self.location.start_line is not None else -1,
                self.location.end_line if self.location.end_line is not None else -1,
            )
        return location_key + (-self.severity.rank, self.message)

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"[{self.severity.value.upper()}] {where}{self.message}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
            "location": self.location.to_dict() if self.location else None,
            "suggestion": self.suggestion,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Finding":
        """Create Finding from dictionary."""
        location = Location.from_dict(data["location"]) if data.get("location") else None
        return cls(
            rule_id=data["rule_id"],
            severity=Severity.from_string(data["severity"]),
            message=data["message"],
            location=location,
            suggestion=data.get("suggestion"),
        )
