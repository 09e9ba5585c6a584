"""Core data types for cbmfile.

Shared dataclasses used by the parser, validator, trial translator, and CLI.
Every type is JSON-serializable via its to_dict/from_dict methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

import numpy as np


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """Diagnostic severity levels."""

    WARNING = "warning"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Trial fields
# ---------------------------------------------------------------------------


class FieldKind(str, Enum):
    """How a trial field's raw value is interpreted."""

    FLAG = "flag"  # non-negative integer
    INT = "int"  # signed integer
    PERCENT = "percent"  # floating point


@dataclass(frozen=True)
class TrialField:
    """A required per-trial parameter and the table column it fills."""

    name: str
    column: str
    kind: FieldKind
    dtype: Any

    @property
    def declared_type(self) -> str:
        return "float" if self.kind is FieldKind.PERCENT else "int"


TRIAL_FIELDS: tuple[TrialField, ...] = (
    TrialField("use_cs", "use_css", FieldKind.FLAG, np.uint32),
    TrialField("use_pfpc_plast", "use_pfpc_plasts", FieldKind.FLAG, np.uint32),
    TrialField("use_mfnc_plast", "use_mfnc_plasts", FieldKind.FLAG, np.uint32),
    TrialField("cs_onset", "cs_onsets", FieldKind.INT, np.int32),
    TrialField("cs_len", "cs_lens", FieldKind.INT, np.int32),
    TrialField("cs_percent", "cs_percents", FieldKind.PERCENT, np.float32),
    TrialField("use_us", "use_uss", FieldKind.FLAG, np.uint32),
    TrialField("us_onset", "us_onsets", FieldKind.INT, np.int32),
)

TRIAL_FIELDS_BY_NAME: Mapping[str, TrialField] = MappingProxyType(
    {f.name: f for f in TRIAL_FIELDS}
)


# ---------------------------------------------------------------------------
# Trial table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class TrialTable:
    """The flat per-trial parameter table handed to the simulation engine.

    One trial name plus one entry in each of the eight parallel arrays per
    trial, in execution order. Arrays are read-only once constructed.
    """

    trial_names: tuple[str, ...]
    use_css: np.ndarray
    use_pfpc_plasts: np.ndarray
    use_mfnc_plasts: np.ndarray
    cs_onsets: np.ndarray
    cs_lens: np.ndarray
    cs_percents: np.ndarray
    use_uss: np.ndarray
    us_onsets: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "trial_names", tuple(self.trial_names))
        n = len(self.trial_names)
        for trial_field in TRIAL_FIELDS:
            array = np.asarray(getattr(self, trial_field.column), dtype=trial_field.dtype)
            if array.shape != (n,):
                raise ValueError(
                    f"{trial_field.column} has shape {array.shape}, expected ({n},)"
                )
            array = array.copy()
            array.setflags(write=False)
            object.__setattr__(self, trial_field.column, array)

    @property
    def num_trials(self) -> int:
        return len(self.trial_names)

    def __len__(self) -> int:
        return self.num_trials

    def column(self, field_name: str) -> np.ndarray:
        """Return the array for a trial field name such as "cs_onset"."""
        return getattr(self, TRIAL_FIELDS_BY_NAME[field_name].column)

    def row(self, index: int) -> dict[str, Any]:
        """Return one trial's name and fields as plain Python values."""
        row: dict[str, Any] = {"trial_name": self.trial_names[index]}
        for trial_field in TRIAL_FIELDS:
            row[trial_field.name] = getattr(self, trial_field.column)[index].item()
        return row

    def rows(self) -> Iterator[dict[str, Any]]:
        for i in range(self.num_trials):
            yield self.row(i)

    def equals(self, other: TrialTable) -> bool:
        """Element-wise equality of names and all columns."""
        if self.trial_names != other.trial_names:
            return False
        return all(
            np.array_equal(getattr(self, f.column), getattr(other, f.column))
            for f in TRIAL_FIELDS
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "num_trials": self.num_trials,
            "trial_names": list(self.trial_names),
        }
        for trial_field in TRIAL_FIELDS:
            result[trial_field.column] = getattr(self, trial_field.column).tolist()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrialTable:
        names = data["trial_names"]
        if "num_trials" in data and data["num_trials"] != len(names):
            raise ValueError(
                f"num_trials is {data['num_trials']} but {len(names)} trial names given"
            )
        columns = {f.column: data[f.column] for f in TRIAL_FIELDS}
        return cls(trial_names=tuple(names), **columns)

    @classmethod
    def empty(cls) -> TrialTable:
        columns = {f.column: np.zeros(0, dtype=f.dtype) for f in TRIAL_FIELDS}
        return cls(trial_names=(), **columns)


# ---------------------------------------------------------------------------
# Validation types
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A diagnostic from the parser or the hierarchy validator."""

    message: str
    line: int = 0
    column: int = 0
    severity: Severity = Severity.ERROR
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "severity": self.severity.value,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationError:
        return cls(
            message=data["message"],
            line=data.get("line", 0),
            column=data.get("column", 0),
            severity=Severity(data.get("severity", "error")),
            context=data.get("context", {}),
        )

    def __str__(self) -> str:
        loc = f"line {self.line}" if self.line else "unknown"
        return f"[{self.severity.value}] {loc}: {self.message}"
