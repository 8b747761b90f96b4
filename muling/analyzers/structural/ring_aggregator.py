from typing import Dict, List, Set
import numpy as np
from loguru import logger

from muling.analyzers.structural.graph_builder import TransactionGraph
from muling.constants import PatternTypes

MS_PER_DAY = 24 * 3600 * 1000


def find_suppressed_accounts(graph: TransactionGraph, suppression_config: Dict) -> Set[str]:
    """
    Identify high-volume, long-lived accounts that behave like legitimate merchants.

    An account is suppressed when its transaction count, distinct
    counterparties and distinct active UTC days all reach the configured minimums.

    Args:
        graph: Transaction graph snapshot
        suppression_config: The 'suppression' configuration section

    Returns:
        Labels of suppressed accounts
    """
    if not suppression_config.get("enabled", True):
        return set()

    min_total = suppression_config.get("min_total_transactions", 200)
    min_unique = suppression_config.get("min_unique_counterparties", 50)
    min_days = suppression_config.get("min_active_days", 20)

    n = graph.node_count
    s, r = graph.senders, graph.receivers
    mask = (s >= 0) & (s < n) & (r >= 0) & (r < n)
    s, r, t = s[mask], r[mask], graph.timestamps[mask]

    totals = np.bincount(np.concatenate([s, r]), minlength=n) if n > 0 else np.zeros(0, dtype=np.int64)
    candidates = set(np.flatnonzero(totals >= min_total).tolist())
    if not candidates:
        return set()

    counterparties: Dict[int, Set[int]] = {node: set() for node in candidates}
    active_days: Dict[int, Set[int]] = {node: set() for node in candidates}
    for sender, receiver, ts in zip(s.tolist(), r.tolist(), t.tolist()):
        day = int(ts // MS_PER_DAY) if np.isfinite(ts) else None
        for node, other in ((sender, receiver), (receiver, sender)):
            if node in counterparties:
                counterparties[node].add(other)
                if day is not None:
                    active_days[node].add(day)

    suppressed = {
        graph.label(node)
        for node in candidates
        if len(counterparties[node]) >= min_unique and len(active_days[node]) >= min_days
    }
    if suppressed:
        logger.info(f"Suppressing {len(suppressed)} high-volume merchant-like accounts")
    return suppressed


class RingAggregator:
    """
    Groups detected patterns into fraud rings and scores the accounts in them.

    Rings are deduplicated on (pattern type, sorted members) and numbered
    deterministically after sorting by pattern type and member key.
    """

    def __init__(self, scoring_config: Dict, suppressed: Set[str], pattern_labels: Dict[str, str]):
        self.scoring_config = scoring_config
        self.suppressed = suppressed
        self.pattern_labels = pattern_labels
        self._candidates: Dict[str, Dict] = {}

    def add_ring(self, pattern_type: str, members: List[str], base_score: float, display: str = None) -> None:
        filtered = [m for m in members if m not in self.suppressed]
        if not filtered:
            return
        sorted_members = sorted(set(filtered))
        key = f"{pattern_type}:{'|'.join(sorted_members)}"
        if key in self._candidates:
            return
        self._candidates[key] = {
            'key': key,
            'pattern_type': pattern_type,
            'members': sorted_members,
            'base_score': base_score,
            'display': display,
        }

    def add_cycle(self, pattern: Dict, base_score: float) -> None:
        cycle_path = pattern['cycle_path']
        if any(m in self.suppressed for m in cycle_path):
            return
        display = " → ".join(cycle_path + [cycle_path[0]])
        self.add_ring(PatternTypes.CYCLE, cycle_path, base_score, display)

    def add_shell_chain(self, pattern: Dict, base_score: float) -> None:
        if any(m in self.suppressed for m in pattern['shell_intermediaries']):
            return
        self.add_ring(PatternTypes.SHELL_CHAIN, pattern['chain_path'], base_score, " → ".join(pattern['chain_path']))

    def add_window_group(self, pattern: Dict, base_score: float) -> None:
        # Suppressed members, the focal account included, are filtered in add_ring.
        self.add_ring(pattern['pattern_type'], [pattern['focal_address']] + pattern['counterparties'], base_score)

    def build_rings(self) -> List[Dict]:
        """
        Number the collected rings and compute their risk scores.

        Returns:
            Ring dictionaries with ring_id, member_accounts, pattern_type,
            risk_score and (for cycles and chains) a display path
        """
        max_score = self.scoring_config.get("max_score", 100)
        per_member = self.scoring_config.get("ring_size_bonus_per_member", 2)
        max_size_bonus = self.scoring_config.get("max_ring_size_bonus", 20)

        ordered = sorted(self._candidates.values(), key=lambda c: (c['pattern_type'], c['key']))
        rings = []
        for idx, candidate in enumerate(ordered):
            size_bonus = min(max_size_bonus, len(candidate['members']) * per_member)
            ring = {
                'ring_id': f"RING_{idx + 1:03d}",
                'member_accounts': candidate['members'],
                'pattern_type': candidate['pattern_type'],
                'risk_score': min(max_score, candidate['base_score'] + size_bonus),
            }
            if candidate['display']:
                ring['display'] = candidate['display']
            rings.append(ring)
        return rings

    def score_accounts(self, rings: List[Dict]) -> List[Dict]:
        """
        Score every ring member by the distinct patterns it takes part in.

        Returns:
            Suspicious account dictionaries sorted by suspicion_score, highest first
        """
        weights = self.scoring_config["pattern_weights"]
        bonus_per_pattern = self.scoring_config.get("multi_pattern_bonus", 5)
        max_score = self.scoring_config.get("max_score", 100)

        account_patterns: Dict[str, Set[str]] = {}
        account_ring: Dict[str, Dict] = {}
        for ring in rings:
            for account in ring['member_accounts']:
                account_patterns.setdefault(account, set()).add(ring['pattern_type'])
                current = account_ring.get(account)
                if current is None or ring['risk_score'] > current['risk_score']:
                    account_ring[account] = ring

        accounts = []
        for account, patterns in account_patterns.items():
            base = sum(weights.get(p, 0) for p in patterns)
            bonus = max(0, len(patterns) - 1) * bonus_per_pattern
            score = min(max_score, base + bonus)
            detected = sorted(self.pattern_labels.get(p, p) for p in patterns)
            ring_id = account_ring[account]['ring_id']
            accounts.append({
                'account_id': account,
                'suspicion_score': round(float(score), 1),
                'detected_patterns': detected,
                'ring_id': ring_id,
                'explanation': "\n".join([
                    f"Account: {account}",
                    f"Detected patterns: {', '.join(detected) or 'none'}",
                    f"Ring ID: {ring_id}",
                    f"Score formula: base({base}) + bonus({bonus}) = {score}",
                ]),
            })

        accounts.sort(key=lambda a: a['suspicion_score'], reverse=True)
        return accounts
