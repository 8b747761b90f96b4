from typing import Dict, List, Sequence, Set, Tuple
from loguru import logger

from muling.analyzers.structural.base_detector import BasePatternDetector
from muling.analyzers.structural.graph_builder import TransactionGraph, build_successors
from muling.constants import AddressRoles, DetectionMethods, PatternTypes
from muling.utils.pattern_utils import flatten_sequences


def canonical_rotation(cycle: Sequence[int]) -> Tuple[int, ...]:
    """Return the lexicographically smallest rotation of a cycle."""
    if not cycle:
        return tuple()
    smallest = min(cycle)
    best = None
    for r, node in enumerate(cycle):
        if node != smallest:
            continue
        rotated = tuple(cycle[r:]) + tuple(cycle[:r])
        if best is None or rotated < best:
            best = rotated
    return best


def _cycles_from_start(
    start: int,
    successors: List[List[int]],
    visited: List[bool],
    seen: Set[Tuple[int, ...]],
    results: List[List[int]],
    min_len: int,
    max_len: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> None:
    """
    Depth-first search for cycles closing back on start.

    Each frame is [node, depth, next_neighbor_index] where depth counts the
    nodes on the path. A frame is only opened while depth <= max_len and the
    path counter has not exceeded max_paths_per_start; the counter check uses
    ">" so one expansion beyond the budget is still attempted.
    """
    path = [start]
    visited[start] = True
    path_count = 0

    stack = []
    if max_len >= 1 and max_paths_per_start >= 0:
        stack.append([start, 1, 0])

    while stack:
        frame = stack[-1]
        node, depth, index = frame
        neighbors = successors[node]

        if index >= min(len(neighbors), max_neighbors):
            stack.pop()
            if stack:
                visited[path.pop()] = False
            continue
        frame[2] = index + 1

        nxt = neighbors[index]
        if nxt == start and depth >= min_len:
            key = canonical_rotation(path)
            if key not in seen:
                seen.add(key)
                results.append(list(key))
            continue
        if visited[nxt] or depth + 1 > max_len:
            continue

        path_count += 1
        visited[nxt] = True
        path.append(nxt)

        if path_count > max_paths_per_start:
            visited[path.pop()] = False
            continue
        stack.append([nxt, depth + 1, 0])

    visited[start] = False


def enumerate_cycles(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    min_len: int,
    max_len: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> List[List[int]]:
    """
    Enumerate simple cycles of min_len..max_len edges, one per rotation class.

    The seen-set spans every start node, so a cycle found from several of its
    members is reported once, in its minimal rotation.
    """
    successors = build_successors(node_count, senders, receivers)
    visited = [False] * len(successors)
    seen: Set[Tuple[int, ...]] = set()
    results: List[List[int]] = []

    for start in range(len(successors)):
        _cycles_from_start(
            start, successors, visited, seen, results,
            min_len, max_len, max_paths_per_start, max_neighbors
        )

    return results


def detect_cycles(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    min_len: int,
    max_len: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> List[int]:
    """Sentinel-terminated flat encoding of enumerate_cycles."""
    return flatten_sequences(
        enumerate_cycles(node_count, senders, receivers, min_len, max_len, max_paths_per_start, max_neighbors)
    )


class CycleDetector(BasePatternDetector):
    """
    Detector for circular transaction patterns.
    Identifies bounded-length cycles that may indicate fund circulation.
    """

    config_section = "cycle_detection"

    def _validate_config(self) -> None:
        super()._validate_config()
        cycle_config = self.config[self.config_section]
        for key in ("min_cycle_length", "max_cycle_length", "max_paths_per_start", "max_neighbors"):
            if key not in cycle_config:
                raise ValueError(f"Missing required cycle detection parameter: {key}")
        if cycle_config["min_cycle_length"] > cycle_config["max_cycle_length"]:
            raise ValueError("min_cycle_length cannot exceed max_cycle_length")

    def detect(self, graph: TransactionGraph) -> List[Dict]:
        """
        Detect cycle patterns in the graph.

        Args:
            graph: Transaction graph snapshot to analyze

        Returns:
            List of detected cycle pattern dictionaries
        """
        patterns_by_id = {}

        min_len = self._require_int("min_cycle_length", minimum=1)
        max_len = self._require_int("max_cycle_length", minimum=1)
        max_paths_per_start = self._require_int("max_paths_per_start")
        max_neighbors = self._require_int("max_neighbors")

        cycles = enumerate_cycles(
            graph.node_count,
            graph.senders,
            graph.receivers,
            min_len,
            max_len,
            max_paths_per_start,
            max_neighbors,
        )

        for cycle in cycles:
            cycle_path = graph.labels(cycle)
            pattern = self._build_pattern(
                PatternTypes.CYCLE,
                ["->".join(cycle_path)],
                graph,
                cycle,
                [AddressRoles.PARTICIPANT] * len(cycle),
                DetectionMethods.CYCLE_DETECTION,
                evidence_transaction_count=len(cycle),
                cycle_path=cycle_path,
                cycle_length=len(cycle),
            )
            patterns_by_id.setdefault(pattern['pattern_id'], pattern)

        logger.debug(
            f"CycleDetector: {len(patterns_by_id)} cycles of length {min_len}-{max_len} "
            f"(max_paths_per_start={max_paths_per_start}, max_neighbors={max_neighbors})"
        )
        return list(patterns_by_id.values())
