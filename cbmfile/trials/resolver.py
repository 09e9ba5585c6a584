"""Trial hierarchy resolver.

Turns the label-keyed trial/block/session maps of a TrialHierarchy into an
index-based acyclic graph, then counts and expands it.

Counting is additive over siblings and multiplicative over repetition: a
reference `(label, n)` contributes n times the trial total of `label`, and a
trial contributes 1 per repetition. For

    experiment: A 2, B 3      (A is a trial)
    block B:    C 4           (C is a trial)

the total is 2*1 + 3*4 = 14.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from cbmfile.core.errors import HierarchyCycleError, ResolutionError
from cbmfile.dsl.ast_nodes import Pair, TrialHierarchy

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    """What a hierarchy node was defined as."""

    TRIAL = "trial"
    BLOCK = "block"
    SESSION = "session"
    EXPERIMENT = "experiment"


@dataclass(frozen=True)
class HierarchyNode:
    """One definition in the resolved graph; children are (node index, count)."""

    index: int
    kind: NodeKind
    label: str
    children: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class HierarchyGraph:
    """Acyclic arena of hierarchy nodes rooted at the experiment."""

    nodes: tuple[HierarchyNode, ...]
    root: int

    def __len__(self) -> int:
        return len(self.nodes)

    def find(self, label: str) -> HierarchyNode | None:
        for node in self.nodes:
            if node.label == label and node.kind is not NodeKind.EXPERIMENT:
                return node
        return None

    def trial_labels(self) -> list[str]:
        """Labels of every trial reachable from the experiment."""
        return [n.label for n in self.nodes if n.kind is NodeKind.TRIAL]


def parse_count(pair: Pair, parent: str) -> int:
    """Parse a reference's repetition count as a non-negative integer."""
    try:
        count = int(pair.count)
    except ValueError:
        raise ResolutionError(
            f"Count {pair.count!r} for '{pair.label}' in {parent} is not an integer",
            pair.line,
        ) from None
    if count < 0:
        raise ResolutionError(
            f"Count {count} for '{pair.label}' in {parent} is negative", pair.line
        )
    return count


def check_label(hierarchy: TrialHierarchy, pair: Pair, parent: str) -> str:
    """Return the one kind `pair.label` is defined as.

    Raises:
        ResolutionError: the label is undefined or defined in more than one map.
    """
    kinds = hierarchy.kinds_of(pair.label)
    if not kinds:
        raise ResolutionError(
            f"'{pair.label}' referenced by {parent} is not a defined trial, block, or session",
            pair.line,
        )
    if len(kinds) > 1:
        raise ResolutionError(
            f"'{pair.label}' is ambiguous: defined as {' and '.join(kinds)}", pair.line
        )
    return kinds[0]


def build_graph(hierarchy: TrialHierarchy) -> HierarchyGraph:
    """Resolve every label reachable from the experiment into an index graph.

    References inside blocks and sessions the experiment never reaches are
    checked as well, so a dangling label fails even when its parent is unused.

    Raises:
        ResolutionError: an unresolved or ambiguous label, a malformed count,
            or an empty experiment.
        HierarchyCycleError: a block/session that (indirectly) references itself.
    """
    if not hierarchy.experiment:
        raise ResolutionError("Experiment definition is missing or has no references")

    for kind, defs in (("block", hierarchy.block_map), ("session", hierarchy.session_map)):
        for label, pairs in defs.items():
            parent = f"{kind} '{label}'"
            for pair in pairs:
                check_label(hierarchy, pair, parent)
                parse_count(pair, parent)

    builder = _GraphBuilder(hierarchy)
    root = builder.add_root()
    graph = HierarchyGraph(nodes=tuple(builder.nodes), root=root)
    logger.debug("Resolved hierarchy into %d nodes", len(graph))
    return graph


class _GraphBuilder:
    def __init__(self, hierarchy: TrialHierarchy) -> None:
        self._hierarchy = hierarchy
        self.nodes: list[HierarchyNode] = []
        self._index: dict[str, int] = {}
        self._path: list[str] = []

    def add_root(self) -> int:
        label = self._hierarchy.experiment_label or "experiment"
        return self._add(NodeKind.EXPERIMENT, label, self._hierarchy.experiment)

    def _add(self, kind: NodeKind, label: str, pairs: list[Pair]) -> int:
        # Reserve the slot first so children get higher indices than parents
        index = len(self.nodes)
        self.nodes.append(HierarchyNode(index, kind, label))
        if kind is not NodeKind.EXPERIMENT:
            self._index[label] = index

        parent = f"{kind.value} '{label}'"
        if kind is not NodeKind.EXPERIMENT:
            self._path.append(label)
        children = tuple(
            (self._resolve(pair, parent), parse_count(pair, parent)) for pair in pairs
        )
        if kind is not NodeKind.EXPERIMENT:
            self._path.pop()

        self.nodes[index] = HierarchyNode(index, kind, label, children)
        return index

    def _resolve(self, pair: Pair, parent: str) -> int:
        label = pair.label
        kind = NodeKind(check_label(self._hierarchy, pair, parent))
        if label in self._path:
            cycle = self._path[self._path.index(label):] + [label]
            raise HierarchyCycleError(cycle)
        if label in self._index:
            return self._index[label]

        if kind is NodeKind.TRIAL:
            index = len(self.nodes)
            self.nodes.append(HierarchyNode(index, kind, label))
            self._index[label] = index
            return index
        if kind is NodeKind.BLOCK:
            return self._add(kind, label, self._hierarchy.block_map[label])
        return self._add(kind, label, self._hierarchy.session_map[label])


# ---------------------------------------------------------------------------
# Counting and expansion
# ---------------------------------------------------------------------------


def count_trials(graph: HierarchyGraph) -> int:
    """Total number of trials the experiment expands to."""
    totals: dict[int, int] = {}

    def total(index: int) -> int:
        if index in totals:
            return totals[index]
        node = graph.nodes[index]
        if node.kind is NodeKind.TRIAL:
            result = 1
        else:
            result = sum(count * total(child) for child, count in node.children)
        totals[index] = result
        return result

    return total(graph.root)


def expand_names(graph: HierarchyGraph) -> list[str]:
    """Depth-first, declaration-ordered trial names of the whole experiment."""
    expansions: dict[int, list[str]] = {}

    def expand(index: int) -> list[str]:
        if index in expansions:
            return expansions[index]
        node = graph.nodes[index]
        if node.kind is NodeKind.TRIAL:
            names = [node.label]
        else:
            names = []
            for child, count in node.children:
                names.extend(expand(child) * count)
        expansions[index] = names
        return names

    return list(expand(graph.root))


def calculate_num_trials(hierarchy: TrialHierarchy) -> int:
    """Resolve a hierarchy and return its total trial count."""
    return count_trials(build_graph(hierarchy))


def expand_trial_names(hierarchy: TrialHierarchy) -> list[str]:
    """Resolve a hierarchy and return its ordered trial names."""
    return expand_names(build_graph(hierarchy))


class HierarchyResolver:
    """Resolve a TrialHierarchy once and answer count/expansion queries.

    Usage:
        resolver = HierarchyResolver(document.trial_hierarchy)
        n = resolver.num_trials
        names = resolver.trial_names()
    """

    def __init__(self, hierarchy: TrialHierarchy) -> None:
        self._hierarchy = hierarchy
        self._graph: HierarchyGraph | None = None

    @property
    def graph(self) -> HierarchyGraph:
        if self._graph is None:
            self._graph = build_graph(self._hierarchy)
        return self._graph

    @property
    def num_trials(self) -> int:
        return count_trials(self.graph)

    def trial_names(self) -> list[str]:
        return expand_names(self.graph)

    def unused_labels(self) -> list[str]:
        """Defined trials, blocks, and sessions the experiment never reaches."""
        defined = [
            *self._hierarchy.trial_map,
            *self._hierarchy.block_map,
            *self._hierarchy.session_map,
        ]
        return [label for label in dict.fromkeys(defined) if self.graph.find(label) is None]
