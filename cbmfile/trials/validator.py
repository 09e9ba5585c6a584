"""Semantic validator for parsed experiment documents.

Runs the checks the trial translator would fail on, plus advisory ones,
and reports them all instead of stopping at the first:
- Missing or empty experiment definition
- References to labels that are undefined or defined more than once
- Malformed or negative repetition counts
- Cyclic block/session references
- Trials missing required fields or holding unparsable values
- Declared types that do not match a field, unknown trial fields
- Definitions the experiment never reaches

Field problems in trials the experiment never reaches are warnings, since
the translator never reads those trials.
"""

from __future__ import annotations

from cbmfile.core.errors import HierarchyCycleError, ResolutionError
from cbmfile.core.types import TRIAL_FIELDS, TRIAL_FIELDS_BY_NAME, Severity, ValidationError
from cbmfile.dsl.ast_nodes import Pair, ParsedExperimentDocument, TrialHierarchy, Variable
from cbmfile.trials.resolver import HierarchyGraph, HierarchyResolver, parse_count
from cbmfile.trials.translator import parse_field_value


def validate_experiment(
    document: ParsedExperimentDocument | TrialHierarchy,
) -> list[ValidationError]:
    """Run all validation passes on a parsed experiment.

    Returns a list of ValidationError objects (may be empty if valid).
    """
    hierarchy = (
        document.trial_hierarchy
        if isinstance(document, ParsedExperimentDocument)
        else document
    )
    errors: list[ValidationError] = []

    _validate_references(hierarchy, errors)
    graph = None
    if not any(e.severity is Severity.ERROR for e in errors):
        graph = _validate_graph(hierarchy, errors)

    # Without a graph every trial counts as reachable
    reachable = set(graph.trial_labels()) if graph is not None else None
    _validate_trials(hierarchy, errors, reachable)

    return errors


def _validate_references(hierarchy: TrialHierarchy, errors: list[ValidationError]) -> None:
    """Check every reference in the experiment, blocks, and sessions."""
    if not hierarchy.experiment:
        errors.append(ValidationError(message="Experiment definition is missing or empty"))

    sources: list[tuple[str, list[Pair]]] = [("experiment", hierarchy.experiment)]
    sources += [(f"block '{label}'", pairs) for label, pairs in hierarchy.block_map.items()]
    sources += [
        (f"session '{label}'", pairs) for label, pairs in hierarchy.session_map.items()
    ]

    for parent, pairs in sources:
        for pair in pairs:
            _check_reference(hierarchy, parent, pair, errors)


def _check_reference(
    hierarchy: TrialHierarchy,
    parent: str,
    pair: Pair,
    errors: list[ValidationError],
) -> None:
    kinds = hierarchy.kinds_of(pair.label)
    if not kinds:
        errors.append(
            ValidationError(
                message=f"{parent} references undefined label '{pair.label}'",
                line=pair.line,
            )
        )
    elif len(kinds) > 1:
        errors.append(
            ValidationError(
                message=f"'{pair.label}' is ambiguous: defined as {' and '.join(kinds)}",
                line=pair.line,
            )
        )

    try:
        parse_count(pair, parent)
    except ResolutionError as exc:
        errors.append(ValidationError(message=exc.message, line=pair.line))


def _validate_trials(
    hierarchy: TrialHierarchy,
    errors: list[ValidationError],
    reachable: set[str] | None,
) -> None:
    """Check each trial definition's fields."""
    for label, fields in hierarchy.trial_map.items():
        severity = (
            Severity.ERROR if reachable is None or label in reachable else Severity.WARNING
        )
        for trial_field in TRIAL_FIELDS:
            if trial_field.name not in fields:
                errors.append(
                    ValidationError(
                        message=f"Trial '{label}' is missing required field '{trial_field.name}'",
                        line=_first_line(fields),
                        severity=severity,
                    )
                )

        for name, variable in fields.items():
            trial_field = TRIAL_FIELDS_BY_NAME.get(name)
            if trial_field is None:
                errors.append(
                    ValidationError(
                        message=f"Trial '{label}' has unknown field '{name}'",
                        line=variable.line,
                        severity=Severity.WARNING,
                    )
                )
                continue
            if variable.type_name != trial_field.declared_type:
                errors.append(
                    ValidationError(
                        message=f"Trial '{label}' declares '{name}' as {variable.type_name}, "
                        f"expected {trial_field.declared_type}",
                        line=variable.line,
                        severity=Severity.WARNING,
                    )
                )
            try:
                parse_field_value(trial_field, variable, label)
            except ResolutionError as exc:
                errors.append(
                    ValidationError(message=exc.message, line=variable.line, severity=severity)
                )


def _validate_graph(
    hierarchy: TrialHierarchy, errors: list[ValidationError]
) -> HierarchyGraph | None:
    """Check for cycles and unreachable definitions; return the graph if it resolves."""
    resolver = HierarchyResolver(hierarchy)
    try:
        unused = resolver.unused_labels()
    except HierarchyCycleError as exc:
        errors.append(ValidationError(message=exc.message, context={"cycle": exc.cycle}))
        return None

    for label in unused:
        errors.append(
            ValidationError(
                message=f"'{label}' is defined but never used by the experiment",
                severity=Severity.WARNING,
            )
        )
    return resolver.graph


def _first_line(fields: dict[str, Variable]) -> int:
    return min((v.line for v in fields.values()), default=0)
