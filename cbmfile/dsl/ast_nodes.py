"""Parsed-document node definitions for the cbmfile DSL.

These dataclasses are what the parser produces. The tree mirrors the
file layout:

    ParsedExperimentDocument
      -> variable sections (mf_input, activity, trial_spec)
      -> trial hierarchy
          -> trial_map, block_map, session_map, experiment

    ParsedBuildDocument
      -> variable sections (connectivity, activity)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cbmfile.core.types import ValidationError

DEFAULT_COUNT = "1"


# ---------------------------------------------------------------------------
# Leaf values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Variable:
    """A typed `<type> <identifier> <value>` declaration."""

    type_name: str
    identifier: str
    value: str
    line: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type_name": self.type_name,
            "identifier": self.identifier,
            "value": self.value,
            "line": self.line,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variable:
        return cls(
            type_name=data["type_name"],
            identifier=data["identifier"],
            value=data["value"],
            line=data.get("line", 0),
        )


@dataclass(frozen=True)
class Pair:
    """A `<label> [<count>]` hierarchy reference; count defaults to "1"."""

    label: str
    count: str = DEFAULT_COUNT
    line: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "count": self.count, "line": self.line}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Pair:
        return cls(
            label=data["label"],
            count=data.get("count", DEFAULT_COUNT),
            line=data.get("line", 0),
        )


# ---------------------------------------------------------------------------
# Sections and hierarchy
# ---------------------------------------------------------------------------


@dataclass
class VariableSection:
    """Identifier -> Variable map for one leaf region."""

    region_type: str
    param_map: dict[str, Variable] = field(default_factory=dict)
    line: int = 0

    def __getitem__(self, identifier: str) -> Variable:
        return self.param_map[identifier]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.param_map

    def to_dict(self) -> dict[str, Any]:
        return {
            "region_type": self.region_type,
            "line": self.line,
            "param_map": {k: v.to_dict() for k, v in self.param_map.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VariableSection:
        return cls(
            region_type=data["region_type"],
            line=data.get("line", 0),
            param_map={
                k: Variable.from_dict(v) for k, v in data.get("param_map", {}).items()
            },
        )


@dataclass
class TrialHierarchy:
    """Trial, block, and session definitions plus the experiment root."""

    trial_map: dict[str, dict[str, Variable]] = field(default_factory=dict)
    block_map: dict[str, list[Pair]] = field(default_factory=dict)
    session_map: dict[str, list[Pair]] = field(default_factory=dict)
    experiment: list[Pair] = field(default_factory=list)
    experiment_label: str = ""

    def kinds_of(self, label: str) -> list[str]:
        """Names of the maps that define `label` (normally zero or one)."""
        kinds = []
        if label in self.trial_map:
            kinds.append("trial")
        if label in self.block_map:
            kinds.append("block")
        if label in self.session_map:
            kinds.append("session")
        return kinds

    def to_dict(self) -> dict[str, Any]:
        return {
            "trial_map": {
                label: {k: v.to_dict() for k, v in fields.items()}
                for label, fields in self.trial_map.items()
            },
            "block_map": {
                label: [p.to_dict() for p in pairs] for label, pairs in self.block_map.items()
            },
            "session_map": {
                label: [p.to_dict() for p in pairs] for label, pairs in self.session_map.items()
            },
            "experiment": [p.to_dict() for p in self.experiment],
            "experiment_label": self.experiment_label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrialHierarchy:
        return cls(
            trial_map={
                label: {k: Variable.from_dict(v) for k, v in fields.items()}
                for label, fields in data.get("trial_map", {}).items()
            },
            block_map={
                label: [Pair.from_dict(p) for p in pairs]
                for label, pairs in data.get("block_map", {}).items()
            },
            session_map={
                label: [Pair.from_dict(p) for p in pairs]
                for label, pairs in data.get("session_map", {}).items()
            },
            experiment=[Pair.from_dict(p) for p in data.get("experiment", [])],
            experiment_label=data.get("experiment_label", ""),
        )


# ---------------------------------------------------------------------------
# Root nodes
# ---------------------------------------------------------------------------


@dataclass
class ParsedExperimentDocument:
    """Root of a parsed `filetype run` file."""

    var_sections: dict[str, VariableSection] = field(default_factory=dict)
    trial_hierarchy: TrialHierarchy = field(default_factory=TrialHierarchy)
    diagnostics: list[ValidationError] = field(default_factory=list)
    source: str = ""

    kind = "run"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "var_sections": {k: v.to_dict() for k, v in self.var_sections.items()},
            "trial_hierarchy": self.trial_hierarchy.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedExperimentDocument:
        return cls(
            var_sections={
                k: VariableSection.from_dict(v)
                for k, v in data.get("var_sections", {}).items()
            },
            trial_hierarchy=TrialHierarchy.from_dict(data.get("trial_hierarchy", {})),
            diagnostics=[ValidationError.from_dict(d) for d in data.get("diagnostics", [])],
            source=data.get("source", ""),
        )


@dataclass
class ParsedBuildDocument:
    """Root of a parsed `filetype build` file."""

    var_sections: dict[str, VariableSection] = field(default_factory=dict)
    diagnostics: list[ValidationError] = field(default_factory=list)
    source: str = ""

    kind = "build"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "var_sections": {k: v.to_dict() for k, v in self.var_sections.items()},
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedBuildDocument:
        return cls(
            var_sections={
                k: VariableSection.from_dict(v)
                for k, v in data.get("var_sections", {}).items()
            },
            diagnostics=[ValidationError.from_dict(d) for d in data.get("diagnostics", [])],
            source=data.get("source", ""),
        )


ParsedDocument = ParsedExperimentDocument | ParsedBuildDocument
