from typing import List, Sequence

from muling.analyzers.structural.detectors.window_scanner import (
    WindowPatternDetector,
    flatten_matches,
    scan_buckets,
)
from muling.analyzers.structural.graph_builder import GROUP_BY_RECEIVER, build_window_buckets
from muling.constants import AddressRoles, PatternTypes


def detect_fan_in(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    timestamps: Sequence[float],
    amounts: Sequence[float],
    small_threshold: float,
    window_ms: float,
    min_unique: int
) -> List[int]:
    """
    Find receivers collecting small payments from many distinct senders in a short window.

    Returns:
        Flat [receiver, sender, receiver, sender, ...] pairs for the first
        qualifying window of each matched receiver, receivers in id order
    """
    buckets = build_window_buckets(
        node_count, senders, receivers, timestamps, amounts, small_threshold, GROUP_BY_RECEIVER
    )
    return flatten_matches(scan_buckets(buckets, window_ms, min_unique))


class FanInDetector(WindowPatternDetector):
    """
    Detector for fan-in (aggregation) patterns.
    Flags accounts receiving from many distinct senders within the configured window.
    """

    config_section = "fan_in_detection"
    group_by = GROUP_BY_RECEIVER
    pattern_type = PatternTypes.FAN_IN
    focal_role = AddressRoles.AGGREGATOR
