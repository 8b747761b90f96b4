from typing import Dict, List, Optional, Sequence
from loguru import logger

from muling.analyzers.structural.base_detector import BasePatternDetector
from muling.analyzers.structural.graph_builder import TransactionGraph, build_successors
from muling.constants import (
    SHELL_MAX_DEGREE,
    SHELL_MIN_DEGREE,
    AddressRoles,
    DetectionMethods,
    PatternTypes,
)
from muling.utils.pattern_utils import flatten_sequences

MIN_CHAIN_NODES = 4


def classify_shells(node_count: int, degrees: Optional[Sequence[int]]) -> List[bool]:
    """Mark nodes whose supplied degree lies in [2, 3]; nodes without a degree are never shells."""
    shells = [False] * max(int(node_count), 0)
    if degrees is None:
        return shells
    for idx, degree in enumerate(list(degrees)[:len(shells)]):
        shells[idx] = SHELL_MIN_DEGREE <= int(degree) <= SHELL_MAX_DEGREE
    return shells


def is_layered_chain(path: Sequence[int], shells: List[bool]) -> bool:
    """True when every interior node is a shell and the tip has left the shell layer."""
    if len(path) < MIN_CHAIN_NODES:
        return False
    if shells[path[-1]]:
        return False
    return all(shells[node] for node in path[1:-1])


def _chains_from_start(
    start: int,
    successors: List[List[int]],
    shells: List[bool],
    visited: List[bool],
    results: List[List[int]],
    max_depth: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> None:
    """
    Depth-first search for layered chains leaving start.

    Frames are [node, next_neighbor_index]. A qualifying path is recorded and
    the search still descends through its tip.
    """
    path = [start]
    visited[start] = True
    path_count = 0

    stack = []
    if max_depth > 0 and max_paths_per_start >= 0:
        stack.append([start, 0])

    while stack:
        frame = stack[-1]
        node, index = frame
        neighbors = successors[node]

        if index >= min(len(neighbors), max_neighbors):
            stack.pop()
            if stack:
                visited[path.pop()] = False
            continue
        frame[1] = index + 1

        nxt = neighbors[index]
        if visited[nxt]:
            continue

        path_count += 1
        visited[nxt] = True
        path.append(nxt)

        if is_layered_chain(path, shells):
            results.append(list(path))

        if len(path) - 1 >= max_depth or path_count > max_paths_per_start:
            visited[path.pop()] = False
            continue
        stack.append([nxt, 0])

    visited[start] = False


def enumerate_shell_chains(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    degrees: Optional[Sequence[int]],
    max_depth: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> List[List[int]]:
    """
    Enumerate start -> shell ... shell -> exit paths of at most max_depth edges.

    Overlapping paths are all reported: a qualifying path and a qualifying
    extension of it appear as separate entries.
    """
    successors = build_successors(node_count, senders, receivers)
    shells = classify_shells(len(successors), degrees)
    visited = [False] * len(successors)
    results: List[List[int]] = []

    for start in range(len(successors)):
        _chains_from_start(
            start, successors, shells, visited, results,
            max_depth, max_paths_per_start, max_neighbors
        )

    return results


def detect_shell_chains(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    degrees: Optional[Sequence[int]],
    max_depth: int,
    max_paths_per_start: int,
    max_neighbors: int
) -> List[int]:
    """Sentinel-terminated flat encoding of enumerate_shell_chains."""
    return flatten_sequences(
        enumerate_shell_chains(node_count, senders, receivers, degrees, max_depth, max_paths_per_start, max_neighbors)
    )


class ShellChainDetector(BasePatternDetector):
    """
    Detector for layered shell-account routing.
    Identifies multi-hop paths passing only through low-degree pass-through accounts.
    """

    config_section = "shell_chain_detection"

    def _validate_config(self) -> None:
        super()._validate_config()
        chain_config = self.config[self.config_section]
        for key in ("max_depth", "max_paths_per_start", "max_neighbors"):
            if key not in chain_config:
                raise ValueError(f"Missing required shell chain detection parameter: {key}")

    def detect(self, graph: TransactionGraph) -> List[Dict]:
        """
        Detect shell chain patterns in the graph.

        Repeats of an identical path (from parallel edges) collapse into one
        pattern; distinct overlapping paths are kept.

        Args:
            graph: Transaction graph snapshot to analyze

        Returns:
            List of detected shell chain pattern dictionaries
        """
        if graph.degrees is None:
            logger.warning("ShellChainDetector: graph carries no node degrees, no node can be a shell")

        patterns_by_id = {}

        max_depth = self._require_int("max_depth")
        max_paths_per_start = self._require_int("max_paths_per_start")
        max_neighbors = self._require_int("max_neighbors")

        chains = enumerate_shell_chains(
            graph.node_count,
            graph.senders,
            graph.receivers,
            graph.degrees,
            max_depth,
            max_paths_per_start,
            max_neighbors,
        )

        for chain in chains:
            chain_path = graph.labels(chain)
            pattern = self._build_pattern(
                PatternTypes.SHELL_CHAIN,
                ["->".join(chain_path)],
                graph,
                chain,
                [AddressRoles.SOURCE] + [AddressRoles.SHELL] * (len(chain) - 2) + [AddressRoles.DESTINATION],
                DetectionMethods.PATH_ANALYSIS,
                evidence_transaction_count=len(chain) - 1,
                chain_path=chain_path,
                chain_hops=len(chain) - 1,
                shell_intermediaries=chain_path[1:-1],
                source_address=chain_path[0],
                destination_address=chain_path[-1],
            )
            patterns_by_id.setdefault(pattern['pattern_id'], pattern)

        logger.debug(
            f"ShellChainDetector: {len(patterns_by_id)} unique chains out of {len(chains)} paths "
            f"(max_depth={max_depth})"
        )
        return list(patterns_by_id.values())
