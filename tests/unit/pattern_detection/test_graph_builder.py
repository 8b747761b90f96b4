"""
Unit tests for graph snapshot construction and edge bucketing.
"""

import math
import networkx as nx
import numpy as np
import pytest

from muling.analyzers.structural.graph_builder import (
    GROUP_BY_RECEIVER,
    GROUP_BY_SENDER,
    TransactionGraph,
    build_successors,
    build_window_buckets,
    compute_small_threshold,
)
from muling.utils import get_window_milliseconds


class TestBuildSuccessors:

    def test_edge_order_and_parallel_edges(self):
        successors = build_successors(3, [0, 0, 0, 1], [2, 1, 2, 0])
        assert successors == [[2, 1, 2], [0], []]

    def test_out_of_range_and_negative_ids_dropped(self):
        successors = build_successors(2, [0, -1, 5, 1], [1, 0, 0, -3])
        assert successors == [[1], []]

    def test_unequal_lengths_truncated(self):
        successors = build_successors(3, [0, 1, 2], [1, 2])
        assert successors == [[1], [2], []]

    def test_negative_node_count(self):
        assert build_successors(-4, [0], [1]) == []


class TestBuildWindowBuckets:

    def test_group_by_receiver(self):
        buckets = build_window_buckets(3, [1, 2], [0, 0], [5.0, 6.0], [1.0, 1.0], 0.0, GROUP_BY_RECEIVER)
        assert buckets == [[(1, 5.0), (2, 6.0)], [], []]

    def test_group_by_sender(self):
        buckets = build_window_buckets(3, [1, 2], [0, 0], [5.0, 6.0], [1.0, 1.0], 0.0, GROUP_BY_SENDER)
        assert buckets == [[], [(0, 5.0)], [(0, 6.0)]]

    def test_unknown_grouping_raises(self):
        with pytest.raises(ValueError):
            build_window_buckets(1, [], [], [], [], 0.0, "counterparty")

    def test_amount_filter_and_nan_amounts(self):
        buckets = build_window_buckets(
            2, [1, 1, 1], [0, 0, 0], [1.0, 2.0, 3.0], [10.0, 500.0, math.nan], 100.0, GROUP_BY_RECEIVER
        )
        assert buckets[0] == [(1, 1.0), (1, 3.0)]

    def test_non_finite_timestamps_dropped(self):
        buckets = build_window_buckets(
            2, [1, 1, 1], [0, 0, 0], [1.0, math.nan, math.inf], [1.0] * 3, 0.0, GROUP_BY_RECEIVER
        )
        assert buckets[0] == [(1, 1.0)]


class TestSmallThreshold:

    @pytest.mark.parametrize("amounts,expected", [
        ([], 0.0),
        ([4.0, 1.0, 3.0, 2.0], 1.5),
        ([10.0, 20.0, 30.0], 10.0),
        ([-5.0, -1.0, -2.0], 0.0),
        ([0.0, 0.0, 7.0], 0.0),
        ([math.nan, 8.0, math.inf, 2.0], 4.0),
    ])
    def test_upper_median_half(self, amounts, expected):
        assert compute_small_threshold(amounts) == pytest.approx(expected)

    def test_custom_factor(self):
        assert compute_small_threshold([10.0, 20.0, 30.0], factor=0.25) == pytest.approx(5.0)

    def test_window_milliseconds(self):
        assert get_window_milliseconds(72) == 72 * 3600 * 1000
        assert get_window_milliseconds(0.5) == 1_800_000


class TestTransactionGraph:

    def test_from_arrays_defaults(self):
        graph = TransactionGraph.from_arrays(3, [0, 1], [1, 2])

        assert graph.edge_count == 2
        assert np.isnan(graph.timestamps).all()
        assert graph.amounts.tolist() == [0.0, 0.0]
        assert graph.degrees is None
        assert graph.label(1) == "1"

    def test_from_networkx(self):
        G = nx.MultiDiGraph()
        G.add_edge("alice", "bob", timestamp=1000, amount=5.0)
        G.add_edge("alice", "bob", timestamp=2000, amount=7.5)
        G.add_edge("bob", "carol", timestamp=3000)

        graph = TransactionGraph.from_networkx(G)

        assert graph.node_count == 3
        assert graph.node_labels == ["alice", "bob", "carol"]
        assert graph.senders.tolist() == [0, 0, 1]
        assert graph.receivers.tolist() == [1, 1, 2]
        assert graph.timestamps.tolist() == [1000.0, 2000.0, 3000.0]
        assert graph.amounts.tolist() == [5.0, 7.5, 0.0]
        assert graph.degrees.tolist() == [2, 3, 1]
        assert graph.labels([2, 0]) == ["carol", "alice"]

    def test_from_networkx_custom_attributes(self):
        G = nx.DiGraph()
        G.add_edge(10, 20, ts=42, value=3.0)

        graph = TransactionGraph.from_networkx(G, timestamp_attr="ts", amount_attr="value")

        assert graph.timestamps.tolist() == [42.0]
        assert graph.amounts.tolist() == [3.0]
        assert graph.label(0) == "10"

    def test_label_out_of_range_falls_back(self):
        graph = TransactionGraph.from_arrays(1, [], [], node_labels=["only"])
        assert graph.label(0) == "only"
        assert graph.label(5) == "5"
