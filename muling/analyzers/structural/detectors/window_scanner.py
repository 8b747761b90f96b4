from typing import Dict, Iterator, List, Tuple
from loguru import logger

from muling.analyzers.structural.base_detector import BasePatternDetector
from muling.analyzers.structural.graph_builder import (
    TransactionGraph,
    build_window_buckets,
    compute_small_threshold,
)
from muling.constants import AddressRoles, DetectionMethods
from muling.utils import get_window_milliseconds


def first_qualifying_window(
    bucket: List[Tuple[int, float]],
    window_ms: float,
    min_unique: int
) -> List[int]:
    """
    Find the first time window holding at least min_unique distinct counterparties.

    The bucket is sorted by timestamp (stable) and scanned with two pointers.
    A span exactly equal to window_ms still counts as inside the window.

    Args:
        bucket: (counterparty, timestamp) pairs for one focal node
        window_ms: Window width in milliseconds
        min_unique: Distinct counterparties required

    Returns:
        Counterparties in the first qualifying window, or an empty list.
        A negative window never matches.
    """
    if window_ms < 0 or len(bucket) < min_unique:
        return []

    entries = sorted(bucket, key=lambda entry: entry[1])
    counts: Dict[int, int] = {}
    left = 0

    for right in range(len(entries)):
        counterparty, right_ts = entries[right]
        counts[counterparty] = counts.get(counterparty, 0) + 1

        while right_ts - entries[left][1] > window_ms:
            left_counterparty = entries[left][0]
            count = counts.get(left_counterparty, 0)
            if count <= 1:
                counts.pop(left_counterparty, None)
            else:
                counts[left_counterparty] = count - 1
            left += 1

        if len(counts) >= min_unique:
            return list(counts)

    return []


def scan_buckets(
    buckets: List[List[Tuple[int, float]]],
    window_ms: float,
    min_unique: int
) -> Iterator[Tuple[int, List[int]]]:
    """Yield (focal_node, counterparties) for every bucket with a qualifying window, in node order."""
    for focal, bucket in enumerate(buckets):
        counterparties = first_qualifying_window(bucket, window_ms, min_unique)
        if counterparties:
            yield focal, counterparties


def flatten_matches(matches: Iterator[Tuple[int, List[int]]]) -> List[int]:
    flat = []
    for focal, counterparties in matches:
        for counterparty in counterparties:
            flat.append(focal)
            flat.append(counterparty)
    return flat


class WindowPatternDetector(BasePatternDetector):
    """
    Shared detector for sliding-window aggregation patterns.
    Subclasses fix the focal role (receiver for fan-in, sender for fan-out).
    """

    group_by: str = None
    pattern_type: str = None
    focal_role: str = None

    def _validate_config(self) -> None:
        super()._validate_config()
        section = self.config[self.config_section]
        for key in ("window_hours", "min_unique_counterparties"):
            if key not in section:
                raise ValueError(f"Missing required '{self.config_section}' parameter: {key}")

    def resolve_small_threshold(self, graph: TransactionGraph) -> float:
        """
        Return the configured small-amount threshold, deriving it from the
        amount median when the section leaves it unset.
        """
        small_threshold = self._get_config_value("small_threshold")
        if small_threshold is not None:
            return float(small_threshold)
        factor = float(self._get_config_value("small_amount_median_factor", 0.5))
        return compute_small_threshold(graph.amounts, factor)

    def detect(self, graph: TransactionGraph) -> List[Dict]:
        """
        Detect aggregation windows in the graph.

        Args:
            graph: Transaction graph snapshot to analyze

        Returns:
            One pattern per focal node, listing the counterparties of its
            first qualifying window
        """
        patterns_by_id = {}

        window_hours = float(self._get_config_value("window_hours"))
        window_ms = get_window_milliseconds(window_hours)
        min_unique = self._require_int("min_unique_counterparties")
        small_threshold = self.resolve_small_threshold(graph)

        buckets = build_window_buckets(
            graph.node_count,
            graph.senders,
            graph.receivers,
            graph.timestamps,
            graph.amounts,
            small_threshold,
            self.group_by,
        )

        for focal, counterparties in scan_buckets(buckets, window_ms, min_unique):
            node_ids = [focal] + counterparties
            pattern = self._build_pattern(
                self.pattern_type,
                [f"focal:{graph.label(focal)}"] + graph.labels(counterparties),
                graph,
                node_ids,
                [self.focal_role] + [AddressRoles.COUNTERPARTY] * len(counterparties),
                DetectionMethods.SLIDING_WINDOW,
                evidence_transaction_count=len(counterparties),
                focal_address=graph.label(focal),
                counterparties=graph.labels(counterparties),
                counterparty_count=len(counterparties),
                window_ms=window_ms,
                small_threshold=small_threshold,
            )
            patterns_by_id.setdefault(pattern['pattern_id'], pattern)

        logger.debug(
            f"{self.__class__.__name__}: {len(patterns_by_id)} focal nodes matched "
            f"(window_ms={window_ms}, min_unique={min_unique}, small_threshold={small_threshold:.2f})"
        )
        return list(patterns_by_id.values())
