"""
Tests for the StructuralPatternAnalyzer orchestrator.

Builds one synthetic snapshot that holds a 3-cycle, a 10-sender fan-in and
a layered shell chain, then checks patterns, rings, account scores and
merchant suppression end to end.
"""

import json
import networkx as nx
import pytest

from muling.analyzers.structural import StructuralPatternAnalyzer
from muling.analyzers.structural.graph_builder import TransactionGraph
from muling.analyzers.structural.structural_pattern_config_loader import (
    get_config_summary,
    load_structural_pattern_config,
    validate_config,
)

DAY_MS = 24 * 3600 * 1000


@pytest.fixture
def mixed_graph(test_data_context):
    base = test_data_context['base_timestamp_ms']
    hour = test_data_context['hour_ms']

    G = nx.MultiDiGraph()
    G.add_edge("C0", "C1", timestamp=base, amount=500.0)
    G.add_edge("C1", "C2", timestamp=base + hour, amount=490.0)
    G.add_edge("C2", "C0", timestamp=base + 2 * hour, amount=480.0)

    for i in range(10):
        G.add_edge(f"S{i}", "AGG", timestamp=base + i * hour, amount=50.0)

    G.add_edge("SRC", "SH1", timestamp=base, amount=1000.0)
    G.add_edge("SH1", "SH2", timestamp=base + hour, amount=990.0)
    G.add_edge("SH2", "DST", timestamp=base + 2 * hour, amount=980.0)

    return TransactionGraph.from_networkx(G)


@pytest.fixture
def analyzer_config(structural_config):
    structural_config["fan_in_detection"]["small_threshold"] = 100
    structural_config["fan_out_detection"]["small_threshold"] = 100
    return structural_config


class TestStructuralPatternAnalyzer:

    def test_analyze_mixed_graph(self, analyzer_config, mixed_graph, test_data_context):
        analyzer = StructuralPatternAnalyzer(network=test_data_context['network'], config=analyzer_config)
        result = analyzer.analyze(mixed_graph)

        print("\n📊 Analysis summary:")
        for key, value in result['summary'].items():
            print(f"   {key}: {value}")

        patterns = result['patterns']
        assert len(patterns['cycle']) == 1
        assert len(patterns['fan_in']) == 1
        assert patterns['fan_out'] == []
        assert len(patterns['shell_chain']) == 1

        rings = result['fraud_rings']
        assert [r['ring_id'] for r in rings] == ["RING_001", "RING_002", "RING_003"]
        assert [r['pattern_type'] for r in rings] == ['cycle', 'fan_in', 'shell_chain']
        assert [r['risk_score'] for r in rings] == [96, 90, 93]
        assert rings[0]['member_accounts'] == ["C0", "C1", "C2"]
        assert rings[0]['display'] == "C0 → C1 → C2 → C0"
        assert len(rings[1]['member_accounts']) == 11
        assert 'display' not in rings[1]
        assert rings[2]['display'] == "SRC → SH1 → SH2 → DST"

        accounts = result['suspicious_accounts']
        assert len(accounts) == 18
        top = accounts[0]
        assert top['suspicion_score'] == 40.0
        assert top['detected_patterns'] == ['cycle_length_3_5']
        assert top['ring_id'] == "RING_001"

        by_account = {a['account_id']: a for a in accounts}
        assert by_account["AGG"]['detected_patterns'] == ['fan_in_10_plus_72h']
        assert by_account["AGG"]['suspicion_score'] == 25.0
        assert by_account["SH1"]['suspicion_score'] == 35.0
        assert by_account["SH1"]['ring_id'] == "RING_003"
        assert "Ring ID: RING_003" in by_account["SH1"]['explanation']

        scores = [a['suspicion_score'] for a in accounts]
        assert scores == sorted(scores, reverse=True)

        assert result['suppressed_accounts'] == []
        summary = result['summary']
        assert summary['total_accounts_analyzed'] == 18
        assert summary['suspicious_accounts_flagged'] == 18
        assert summary['fraud_rings_detected'] == 3
        assert summary['processing_time_seconds'] >= 0

    def test_account_and_pair_details(self, analyzer_config, mixed_graph):
        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(mixed_graph)

        details = result['node_details']
        assert len(details) == 18

        c0 = details["C0"]
        assert c0['credits'] == 1
        assert c0['debits'] == 1
        assert c0['net_balance'] == -20.0
        assert c0['rings'] == ["RING_001"]
        assert c0['rings_count'] == 1
        assert c0['suspicion_score'] == 40.0
        assert c0['first_txn'] == "2023-11-14T22:13:20.000Z"
        assert c0['last_txn'] == "2023-11-15T00:13:20.000Z"

        assert details["AGG"]['credits'] == 10
        assert details["AGG"]['net_balance'] == 500.0
        assert details["AGG"]['smurfs'] == ["SMURF_IN_001"]
        assert details["AGG"]['rings'] == []
        assert details["S3"]['smurfs'] == ["SMURF_IN_001"]
        assert details["SH1"]['shells'] == ["SHELL_001"]
        assert details["DST"]['shells'] == ["SHELL_001"]

        classes = result['account_classes']
        assert classes['cycle'] == ["C0", "C1", "C2"]
        assert classes['fan_in'] == ["AGG"]
        assert classes['fan_out'] == []
        assert classes['stage1'] == ["SH1"]
        assert classes['stage2'] == ["SH2"]
        assert classes['stage3'] == []

        edges = result['edge_details']
        assert len(edges) == 16
        assert edges["C0→C1"] == {
            'net': 500.0,
            'count': 1,
            'first_txn': "2023-11-14T22:13:20.000Z",
            'last_txn': "2023-11-14T22:13:20.000Z",
        }

    def test_account_in_multiple_patterns(self, analyzer_config, test_data_context):
        base = test_data_context['base_timestamp_ms']
        hour = test_data_context['hour_ms']

        # HUB closes a 3-cycle and also collects from 10 distinct senders.
        G = nx.MultiDiGraph()
        G.add_edge("HUB", "X1", timestamp=base, amount=500.0)
        G.add_edge("X1", "X2", timestamp=base, amount=500.0)
        G.add_edge("X2", "HUB", timestamp=base, amount=500.0)
        for i in range(10):
            G.add_edge(f"P{i}", "HUB", timestamp=base + i * hour, amount=20.0)

        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(TransactionGraph.from_networkx(G))

        hub = next(a for a in result['suspicious_accounts'] if a['account_id'] == "HUB")
        # cycle 40 + fan_in 25 + one extra pattern bonus of 5
        assert hub['suspicion_score'] == 70.0
        assert hub['detected_patterns'] == ['cycle_length_3_5', 'fan_in_10_plus_72h']
        assert result['suspicious_accounts'][0]['account_id'] == "HUB"

    def test_empty_graph(self, analyzer_config):
        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(
            TransactionGraph.from_arrays(0, [], [])
        )
        assert result['fraud_rings'] == []
        assert result['suspicious_accounts'] == []
        assert all(patterns == [] for patterns in result['patterns'].values())
        assert result['summary']['total_accounts_analyzed'] == 0

    def test_loads_default_config(self):
        analyzer = StructuralPatternAnalyzer()
        assert analyzer.cycle_detector is not None
        assert analyzer.config["cycle_detection"]["max_cycle_length"] == 5

    def test_invalid_config_rejected(self, structural_config):
        del structural_config["suppression"]
        with pytest.raises(ValueError):
            StructuralPatternAnalyzer(config=structural_config)


class TestMerchantSuppression:

    @pytest.fixture
    def merchant_graph(self, test_data_context):
        base = test_data_context['base_timestamp_ms']
        G = nx.MultiDiGraph()
        # 200 purchases from 60 customers spread over 25 days
        for i in range(200):
            G.add_edge(f"CUSTOMER_{i % 60:02d}", "MERCHANT", timestamp=base + (i % 25) * DAY_MS, amount=50.0)
        return TransactionGraph.from_networkx(G)

    def test_merchant_is_suppressed(self, analyzer_config, merchant_graph):
        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(merchant_graph)

        assert result['suppressed_accounts'] == ["MERCHANT"]
        assert len(result['patterns']['fan_in']) == 1

        # The group survives with the merchant filtered out of its members.
        assert len(result['fraud_rings']) == 1
        ring = result['fraud_rings'][0]
        assert ring['pattern_type'] == 'fan_in'
        assert "MERCHANT" not in ring['member_accounts']
        assert len(ring['member_accounts']) == 10
        assert ring['risk_score'] == 90

        flagged = {a['account_id'] for a in result['suspicious_accounts']}
        assert "MERCHANT" not in flagged
        assert flagged == set(ring['member_accounts'])
        assert result['account_classes']['fan_in'] == []
        assert result['node_details']["MERCHANT"]['suspicion_score'] == 0
        assert result['node_details']["MERCHANT"]['smurfs'] == ["SMURF_IN_001"]

    def test_suppression_disabled(self, analyzer_config, merchant_graph):
        analyzer_config["suppression"]["enabled"] = False
        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(merchant_graph)

        assert result['suppressed_accounts'] == []
        assert len(result['fraud_rings']) == 1
        ring = result['fraud_rings'][0]
        assert ring['pattern_type'] == 'fan_in'
        assert "MERCHANT" in ring['member_accounts']

    def test_fewer_active_days_not_suppressed(self, analyzer_config, test_data_context):
        analyzer_config["suppression"]["min_active_days"] = 30
        base = test_data_context['base_timestamp_ms']
        G = nx.MultiDiGraph()
        for i in range(200):
            G.add_edge(f"CUSTOMER_{i % 60:02d}", "MERCHANT", timestamp=base + (i % 25) * DAY_MS, amount=50.0)

        result = StructuralPatternAnalyzer(config=analyzer_config).analyze(TransactionGraph.from_networkx(G))
        assert result['suppressed_accounts'] == []


class TestConfigLoader:

    def test_default_config_valid(self):
        config = load_structural_pattern_config()
        validate_config(config)
        summary = get_config_summary(config)
        assert summary['suppression_enabled'] is True
        assert "cycle_detection" in summary['available_sections']

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError):
            load_structural_pattern_config(str(tmp_path / "absent.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(RuntimeError):
            load_structural_pattern_config(str(path))

    def test_missing_section(self, tmp_path, default_config):
        config = dict(default_config)
        del config["cycle_detection"]
        path = tmp_path / "partial.json"
        path.write_text(json.dumps(config))
        with pytest.raises(ValueError):
            load_structural_pattern_config(str(path))

    def test_custom_path_used_by_analyzer(self, tmp_path, default_config):
        config = json.loads(json.dumps(default_config))
        config["cycle_detection"]["min_cycle_length"] = 2
        path = tmp_path / "custom.json"
        path.write_text(json.dumps(config))

        analyzer = StructuralPatternAnalyzer(config_path=str(path))
        result = analyzer.analyze(TransactionGraph.from_arrays(2, [0, 1], [1, 0]))

        assert len(result['patterns']['cycle']) == 1
        assert result['fraud_rings'][0]['display'] == "0 → 1 → 0"

    def test_unreadable_config_path(self, tmp_path):
        with pytest.raises(RuntimeError) as exc_info:
            load_structural_pattern_config(str(tmp_path))
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_detector_setting_accessor(self, structural_config, test_data_context):
        structural_config["cycle_detection"]["network_overrides"] = {
            test_data_context['network']: {"ring_base_score": 99}
        }
        analyzer = StructuralPatternAnalyzer(network=test_data_context['network'], config=structural_config)
        assert analyzer.cycle_detector.get_setting("ring_base_score") == 99
        assert analyzer.fan_in_detector.get_setting("ring_base_score") == 70
        assert analyzer.fan_in_detector.get_setting("absent", "fallback") == "fallback"
