from typing import List, Sequence

from muling.analyzers.structural.detectors.window_scanner import (
    WindowPatternDetector,
    flatten_matches,
    scan_buckets,
)
from muling.analyzers.structural.graph_builder import GROUP_BY_SENDER, build_window_buckets
from muling.constants import AddressRoles, PatternTypes


def detect_fan_out(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    timestamps: Sequence[float],
    amounts: Sequence[float],
    small_threshold: float,
    window_ms: float,
    min_unique: int
) -> List[int]:
    """Mirror of detect_fan_in: flat [sender, receiver, ...] pairs for dispersing senders."""
    buckets = build_window_buckets(
        node_count, senders, receivers, timestamps, amounts, small_threshold, GROUP_BY_SENDER
    )
    return flatten_matches(scan_buckets(buckets, window_ms, min_unique))


class FanOutDetector(WindowPatternDetector):
    """
    Detector for fan-out (distribution) patterns.
    Flags accounts sending to many distinct receivers within the configured window.
    """

    config_section = "fan_out_detection"
    group_by = GROUP_BY_SENDER
    pattern_type = PatternTypes.FAN_OUT
    focal_role = AddressRoles.DISTRIBUTOR
