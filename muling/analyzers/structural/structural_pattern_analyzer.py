import time
from typing import Any, Dict, List
from loguru import logger

from muling.analyzers.structural.account_details import (
    assign_group_ids,
    build_edge_details,
    build_node_details,
    classify_accounts,
)
from muling.analyzers.structural.graph_builder import TransactionGraph
from muling.analyzers.structural.ring_aggregator import RingAggregator, find_suppressed_accounts
from muling.analyzers.structural.structural_pattern_config_loader import (
    get_config_summary,
    load_structural_pattern_config,
    validate_config,
)
from muling.analyzers.structural.detectors import (
    CycleDetector,
    FanInDetector,
    FanOutDetector,
    ShellChainDetector,
)
from muling.constants import PatternTypes


class StructuralPatternAnalyzer:
    """
    Orchestrator for structural pattern analysis.
    Coordinates the specialized pattern detectors over one graph snapshot and
    groups their findings into scored fraud rings.
    """

    def __init__(
        self,
        config_path: str = None,
        network: str = None,
        config: Dict[str, Any] = None
    ):
        self.network = network

        if config is not None:
            validate_config(config)
            self.config = config
        else:
            self.config = load_structural_pattern_config(config_path)
        logger.info(f"Loaded structural pattern configuration for network: {network}")
        logger.debug(f"Configuration summary: {get_config_summary(self.config)}")

        self._init_detectors()

    def _init_detectors(self) -> None:
        """Initialize all pattern detector instances."""
        self.fan_in_detector = FanInDetector(self.config, self.network)
        self.fan_out_detector = FanOutDetector(self.config, self.network)
        self.cycle_detector = CycleDetector(self.config, self.network)
        self.shell_chain_detector = ShellChainDetector(self.config, self.network)
        logger.info("Initialized all pattern detectors")

    def analyze(self, graph: TransactionGraph) -> Dict[str, Any]:
        """
        Run every detector over the graph and assemble the findings.

        Args:
            graph: Transaction graph snapshot

        Returns:
            Dictionary with:
                - patterns: pattern dictionaries keyed by pattern type
                - fraud_rings: numbered, scored rings
                - suspicious_accounts: per-account suspicion scores
                - suppressed_accounts: accounts excluded as merchant-like
                - account_classes: flagged accounts by pattern and shell stage
                - node_details: per-account activity and group memberships
                - edge_details: per sender→receiver pair aggregates
                - summary: counts and processing time
        """
        started_at = time.perf_counter()
        logger.info(f"Starting structural pattern analysis: {graph.node_count} nodes, {graph.edge_count} edges")

        patterns: Dict[str, List[Dict]] = {}

        logger.info("Detecting cycles")
        patterns[PatternTypes.CYCLE] = self.cycle_detector.detect(graph)
        logger.info(f"Found {len(patterns[PatternTypes.CYCLE])} unique cycle patterns")

        logger.info("Detecting fan-in aggregation windows")
        patterns[PatternTypes.FAN_IN] = self.fan_in_detector.detect(graph)
        logger.info(f"Found {len(patterns[PatternTypes.FAN_IN])} fan-in patterns")

        logger.info("Detecting fan-out distribution windows")
        patterns[PatternTypes.FAN_OUT] = self.fan_out_detector.detect(graph)
        logger.info(f"Found {len(patterns[PatternTypes.FAN_OUT])} fan-out patterns")

        logger.info("Detecting layered shell chains")
        patterns[PatternTypes.SHELL_CHAIN] = self.shell_chain_detector.detect(graph)
        logger.info(f"Found {len(patterns[PatternTypes.SHELL_CHAIN])} unique shell chain patterns")

        suppressed = find_suppressed_accounts(graph, self.config["suppression"])
        aggregator = RingAggregator(self.config["account_scoring"], suppressed, self._pattern_labels())

        for pattern in patterns[PatternTypes.CYCLE]:
            aggregator.add_cycle(pattern, self._ring_base_score(self.cycle_detector))
        for pattern in patterns[PatternTypes.SHELL_CHAIN]:
            aggregator.add_shell_chain(pattern, self._ring_base_score(self.shell_chain_detector))
        for pattern in patterns[PatternTypes.FAN_IN]:
            aggregator.add_window_group(pattern, self._ring_base_score(self.fan_in_detector))
        for pattern in patterns[PatternTypes.FAN_OUT]:
            aggregator.add_window_group(pattern, self._ring_base_score(self.fan_out_detector))

        rings = aggregator.build_rings()
        suspicious_accounts = aggregator.score_accounts(rings)

        memberships = assign_group_ids(patterns, suppressed)
        node_details = build_node_details(graph, rings, suspicious_accounts, memberships)
        edge_details = build_edge_details(graph)
        account_classes = classify_accounts(patterns, suppressed)

        elapsed = time.perf_counter() - started_at
        summary = {
            'total_accounts_analyzed': graph.node_count,
            'suspicious_accounts_flagged': len(suspicious_accounts),
            'fraud_rings_detected': len(rings),
            'processing_time_seconds': round(elapsed, 1),
        }

        logger.info(
            f"Structural pattern analysis completed: {len(rings)} rings, "
            f"{len(suspicious_accounts)} suspicious accounts in {elapsed:.3f}s"
        )

        return {
            'patterns': patterns,
            'fraud_rings': rings,
            'suspicious_accounts': suspicious_accounts,
            'suppressed_accounts': sorted(suppressed),
            'account_classes': account_classes,
            'node_details': node_details,
            'edge_details': edge_details,
            'summary': summary,
        }

    def _ring_base_score(self, detector) -> float:
        return float(detector.get_setting("ring_base_score", 0))

    def _pattern_labels(self) -> Dict[str, str]:
        """Human-readable pattern names reflecting the active thresholds."""
        cycle = self.cycle_detector
        fan_in = self.fan_in_detector
        fan_out = self.fan_out_detector
        return {
            PatternTypes.CYCLE: (
                f"cycle_length_{cycle.get_setting('min_cycle_length')}"
                f"_{cycle.get_setting('max_cycle_length')}"
            ),
            PatternTypes.FAN_IN: (
                f"fan_in_{fan_in.get_setting('min_unique_counterparties')}"
                f"_plus_{fan_in.get_setting('window_hours'):g}h"
            ),
            PatternTypes.FAN_OUT: (
                f"fan_out_{fan_out.get_setting('min_unique_counterparties')}"
                f"_plus_{fan_out.get_setting('window_hours'):g}h"
            ),
            PatternTypes.SHELL_CHAIN: "layered_shell_3_hops",
        }
