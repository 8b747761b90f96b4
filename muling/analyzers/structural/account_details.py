from typing import Dict, List, Set
import numpy as np
from loguru import logger

from muling.analyzers.structural.graph_builder import TransactionGraph
from muling.constants import PatternTypes
from muling.utils import format_timestamp_ms

SMURF_IN_PREFIX = "SMURF_IN"
SMURF_OUT_PREFIX = "SMURF_OUT"
SHELL_PREFIX = "SHELL"


def _group_id(prefix: str, idx: int) -> str:
    return f"{prefix}_{idx + 1:03d}"


def _accepted_shell_chains(shell_patterns: List[Dict], suppressed: Set[str]) -> List[List[str]]:
    return [
        p['chain_path'] for p in shell_patterns
        if not any(m in suppressed for m in p['shell_intermediaries'])
    ]


def assign_group_ids(patterns: Dict[str, List[Dict]], suppressed: Set[str]) -> Dict[str, Dict[str, List[str]]]:
    """
    Number smurfing groups and shell chains and map accounts to their group ids.

    Fan-in groups become SMURF_IN_nnn and fan-out groups SMURF_OUT_nnn, each
    numbered in focal-account order; every group is numbered, suppressed
    focal accounts included. Shell chains whose intermediaries are all
    unsuppressed become SHELL_nnn, numbered in order of their
    "|"-joined member path.

    Args:
        patterns: Detector output keyed by pattern type
        suppressed: Labels of suppressed accounts

    Returns:
        account label -> {'smurfs': [...], 'shells': [...]}
    """
    memberships: Dict[str, Dict[str, List[str]]] = {}

    def add(account: str, kind: str, group_id: str) -> None:
        entry = memberships.setdefault(account, {'smurfs': [], 'shells': []})
        entry[kind].append(group_id)

    for pattern_type, prefix in ((PatternTypes.FAN_IN, SMURF_IN_PREFIX), (PatternTypes.FAN_OUT, SMURF_OUT_PREFIX)):
        groups = sorted(patterns.get(pattern_type, []), key=lambda p: p['focal_address'])
        for idx, pattern in enumerate(groups):
            group_id = _group_id(prefix, idx)
            for account in [pattern['focal_address']] + pattern['counterparties']:
                add(account, 'smurfs', group_id)

    shell_keys = sorted({"|".join(chain) for chain in _accepted_shell_chains(
        patterns.get(PatternTypes.SHELL_CHAIN, []), suppressed
    )})
    for idx, key in enumerate(shell_keys):
        group_id = _group_id(SHELL_PREFIX, idx)
        for account in key.split("|"):
            add(account, 'shells', group_id)

    return memberships


def classify_accounts(patterns: Dict[str, List[Dict]], suppressed: Set[str]) -> Dict[str, List[str]]:
    """
    Group flagged accounts into display classes.

    Shell-chain intermediaries are staged by position: the first hop after the
    source is stage1, the second stage2 and any later hop stage3. Suppressed
    accounts never appear in a class.

    Returns:
        Dictionary with cycle, fan_in, fan_out, stage1, stage2 and stage3
        account lists in first-seen order
    """
    classes: Dict[str, Dict[str, None]] = {
        'cycle': {}, 'fan_in': {}, 'fan_out': {}, 'stage1': {}, 'stage2': {}, 'stage3': {},
    }

    for pattern in patterns.get(PatternTypes.CYCLE, []):
        for account in pattern['cycle_path']:
            classes['cycle'][account] = None
    for pattern in patterns.get(PatternTypes.FAN_IN, []):
        classes['fan_in'][pattern['focal_address']] = None
    for pattern in patterns.get(PatternTypes.FAN_OUT, []):
        classes['fan_out'][pattern['focal_address']] = None

    for chain in _accepted_shell_chains(patterns.get(PatternTypes.SHELL_CHAIN, []), suppressed):
        for idx, account in enumerate(chain[1:-1]):
            stage = 'stage1' if idx == 0 else 'stage2' if idx == 1 else 'stage3'
            classes[stage][account] = None

    return {
        name: [account for account in members if account not in suppressed]
        for name, members in classes.items()
    }


def _edge_arrays(graph: TransactionGraph):
    n = graph.node_count
    s, r = graph.senders, graph.receivers
    t, a = graph.timestamps, graph.amounts
    edge_count = min(len(s), len(r), len(t), len(a))
    s, r, t, a = s[:edge_count], r[:edge_count], t[:edge_count], a[:edge_count]
    a = np.where(np.isfinite(a), a, 0.0)
    return n, s, r, t, a


def build_node_details(
    graph: TransactionGraph,
    rings: List[Dict],
    suspicious_accounts: List[Dict],
    memberships: Dict[str, Dict[str, List[str]]]
) -> Dict[str, Dict]:
    """
    Per-account activity summary for every node in the snapshot.

    Each entry carries the suspicion score (0 when not flagged), net balance
    (credits minus debits in amount), credit and debit transaction counts,
    the cycle ring ids, smurfing group ids and shell chain ids the account
    belongs to, and the first and last transaction time.

    Args:
        graph: Transaction graph snapshot
        rings: Output of RingAggregator.build_rings
        suspicious_accounts: Output of RingAggregator.score_accounts
        memberships: Output of assign_group_ids

    Returns:
        account label -> detail dictionary
    """
    n, s, r, t, a = _edge_arrays(graph)

    s_ok = (s >= 0) & (s < n)
    r_ok = (r >= 0) & (r < n)

    debits = np.bincount(s[s_ok], minlength=n) if n > 0 else np.zeros(0, dtype=np.int64)
    credits = np.bincount(r[r_ok], minlength=n) if n > 0 else np.zeros(0, dtype=np.int64)
    net = np.zeros(n)
    np.add.at(net, r[r_ok], a[r_ok])
    np.subtract.at(net, s[s_ok], a[s_ok])

    first_seen = np.full(n, np.inf)
    last_seen = np.full(n, -np.inf)
    finite = np.isfinite(t)
    for ids, ok in ((s, s_ok), (r, r_ok)):
        mask = ok & finite
        np.minimum.at(first_seen, ids[mask], t[mask])
        np.maximum.at(last_seen, ids[mask], t[mask])

    cycle_rings: Dict[str, List[str]] = {}
    for ring in rings:
        if ring['pattern_type'] != PatternTypes.CYCLE:
            continue
        for account in ring['member_accounts']:
            cycle_rings.setdefault(account, []).append(ring['ring_id'])

    scores = {acc['account_id']: acc['suspicion_score'] for acc in suspicious_accounts}

    details = {}
    for node in range(n):
        account = graph.label(node)
        groups = memberships.get(account, {'smurfs': [], 'shells': []})
        account_rings = cycle_rings.get(account, [])
        details[account] = {
            'name': account,
            'suspicion_score': scores.get(account, 0),
            'net_balance': round(float(net[node]), 2),
            'credits': int(credits[node]),
            'debits': int(debits[node]),
            'rings': account_rings,
            'smurfs': list(groups['smurfs']),
            'shells': list(groups['shells']),
            'rings_count': len(account_rings),
            'first_txn': format_timestamp_ms(first_seen[node]) if np.isfinite(first_seen[node]) else None,
            'last_txn': format_timestamp_ms(last_seen[node]) if np.isfinite(last_seen[node]) else None,
        }

    logger.debug(f"Built node details for {len(details)} accounts")
    return details


def build_edge_details(graph: TransactionGraph) -> Dict[str, Dict]:
    """
    Aggregate transfers per ordered sender→receiver pair.

    Returns:
        "sender→receiver" -> {'net', 'count', 'first_txn', 'last_txn'}, pairs in
        first-seen edge order; edges with an endpoint outside the graph are skipped
    """
    n, s, r, t, a = _edge_arrays(graph)
    mask = (s >= 0) & (s < n) & (r >= 0) & (r < n)

    aggregated: Dict[str, Dict] = {}
    for sender, receiver, ts, amount in zip(s[mask].tolist(), r[mask].tolist(), t[mask].tolist(), a[mask].tolist()):
        key = f"{graph.label(sender)}→{graph.label(receiver)}"
        agg = aggregated.get(key)
        if agg is None:
            agg = aggregated[key] = {'net': 0.0, 'count': 0, 'first': np.inf, 'last': -np.inf}
        agg['net'] += amount
        agg['count'] += 1
        if np.isfinite(ts):
            agg['first'] = min(agg['first'], ts)
            agg['last'] = max(agg['last'], ts)

    return {
        key: {
            'net': round(agg['net'], 2),
            'count': agg['count'],
            'first_txn': format_timestamp_ms(agg['first']) if np.isfinite(agg['first']) else None,
            'last_txn': format_timestamp_ms(agg['last']) if np.isfinite(agg['last']) else None,
        }
        for key, agg in aggregated.items()
    }
