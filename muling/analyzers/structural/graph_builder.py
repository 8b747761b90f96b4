from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import networkx as nx
import numpy as np
from loguru import logger

GROUP_BY_RECEIVER = "receiver"
GROUP_BY_SENDER = "sender"


def _coerce_edge_arrays(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    *columns: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray, List[np.ndarray], np.ndarray]:
    """
    Convert parallel edge arrays to numpy and compute the in-range edge mask.

    Arrays of unequal length are truncated to the shortest one. An edge is kept
    only when both endpoints fall inside [0, node_count).

    Returns:
        (senders, receivers, columns, mask)
    """
    s = np.asarray(senders, dtype=np.int64).ravel()
    r = np.asarray(receivers, dtype=np.int64).ravel()
    cols = [np.asarray(c, dtype=np.float64).ravel() for c in columns]

    lengths = [len(s), len(r)] + [len(c) for c in cols]
    edge_count = min(lengths)
    if len(set(lengths)) > 1:
        logger.warning(f"Edge arrays have unequal lengths {lengths}, truncating to {edge_count}")
        s = s[:edge_count]
        r = r[:edge_count]
        cols = [c[:edge_count] for c in cols]

    n = max(int(node_count), 0)
    mask = (s >= 0) & (s < n) & (r >= 0) & (r < n)

    dropped = edge_count - int(mask.sum())
    if dropped:
        logger.debug(f"Dropped {dropped} edges referencing node ids outside [0, {n})")

    return s, r, cols, mask


def build_successors(node_count: int, senders: Sequence[int], receivers: Sequence[int]) -> List[List[int]]:
    """
    Build the sender -> receivers adjacency list used by the DFS detectors.

    Receivers keep their edge-array order and parallel edges are kept as
    repeated entries.
    """
    s, r, _, mask = _coerce_edge_arrays(node_count, senders, receivers)
    adjacency: List[List[int]] = [[] for _ in range(max(int(node_count), 0))]
    for sender, receiver in zip(s[mask].tolist(), r[mask].tolist()):
        adjacency[sender].append(receiver)
    return adjacency


def build_window_buckets(
    node_count: int,
    senders: Sequence[int],
    receivers: Sequence[int],
    timestamps: Sequence[float],
    amounts: Sequence[float],
    small_threshold: float,
    group_by: str
) -> List[List[Tuple[int, float]]]:
    """
    Bucket qualifying edges by focal node for the sliding-window scan.

    Args:
        node_count: Number of nodes in the snapshot
        senders: Sender id per edge
        receivers: Receiver id per edge
        timestamps: Edge timestamps in milliseconds
        amounts: Edge amounts
        small_threshold: Edges above this amount are ignored; a non-positive
            value disables the amount filter
        group_by: GROUP_BY_RECEIVER for fan-in, GROUP_BY_SENDER for fan-out

    Returns:
        One list of (counterparty, timestamp) pairs per node, in edge order
    """
    if group_by not in (GROUP_BY_RECEIVER, GROUP_BY_SENDER):
        raise ValueError(f"Unknown bucket grouping: {group_by}")

    s, r, (t, a), mask = _coerce_edge_arrays(node_count, senders, receivers, timestamps, amounts)

    mask &= np.isfinite(t)
    if small_threshold > 0:
        # NaN amounts compare False and stay in, matching a plain "a > threshold" skip.
        mask &= ~(a > small_threshold)

    if group_by == GROUP_BY_RECEIVER:
        focal, counterparty = r, s
    else:
        focal, counterparty = s, r

    buckets: List[List[Tuple[int, float]]] = [[] for _ in range(max(int(node_count), 0))]
    for f, c, ts in zip(focal[mask].tolist(), counterparty[mask].tolist(), t[mask].tolist()):
        buckets[f].append((c, ts))
    return buckets


def compute_small_threshold(amounts: Sequence[float], factor: float = 0.5) -> float:
    """
    Derive the small-payment threshold from the amount distribution.

    Uses the upper median (element len // 2 of the sorted finite amounts).
    Returns 0.0, which disables amount filtering, when the median is not positive.
    """
    values = np.asarray(amounts, dtype=np.float64).ravel()
    values = np.sort(values[np.isfinite(values)])
    if len(values) == 0:
        return 0.0
    median = float(values[len(values) // 2])
    return median * factor if median > 0 else 0.0


@dataclass
class TransactionGraph:
    """
    Immutable snapshot of a transaction graph as index-aligned edge arrays.

    Nodes are dense ids in [0, node_count). Degrees are supplied by the caller
    and only consumed by the shell-chain detector.
    """
    node_count: int
    senders: np.ndarray
    receivers: np.ndarray
    timestamps: np.ndarray
    amounts: np.ndarray
    degrees: Optional[np.ndarray] = None
    node_labels: Optional[List[str]] = None

    def __post_init__(self):
        self.senders = np.asarray(self.senders, dtype=np.int64).ravel()
        self.receivers = np.asarray(self.receivers, dtype=np.int64).ravel()
        edge_count = len(self.senders)

        if self.timestamps is None:
            self.timestamps = np.full(edge_count, np.nan)
        if self.amounts is None:
            self.amounts = np.zeros(edge_count)
        self.timestamps = np.asarray(self.timestamps, dtype=np.float64).ravel()
        self.amounts = np.asarray(self.amounts, dtype=np.float64).ravel()

        if self.degrees is not None:
            self.degrees = np.asarray(self.degrees, dtype=np.int64).ravel()
        if self.node_labels is not None:
            self.node_labels = [str(label) for label in self.node_labels]

    @classmethod
    def from_arrays(
        cls,
        node_count: int,
        senders: Sequence[int],
        receivers: Sequence[int],
        timestamps: Optional[Sequence[float]] = None,
        amounts: Optional[Sequence[float]] = None,
        degrees: Optional[Sequence[int]] = None,
        node_labels: Optional[Sequence[str]] = None
    ) -> "TransactionGraph":
        return cls(
            node_count=int(node_count),
            senders=senders,
            receivers=receivers,
            timestamps=timestamps,
            amounts=amounts,
            degrees=degrees,
            node_labels=list(node_labels) if node_labels is not None else None,
        )

    @classmethod
    def from_networkx(
        cls,
        G: nx.DiGraph,
        timestamp_attr: str = "timestamp",
        amount_attr: str = "amount"
    ) -> "TransactionGraph":
        """
        Snapshot a NetworkX graph into edge arrays.

        Nodes are numbered in G.nodes() order. Every edge of a MultiDiGraph
        becomes one array entry, and node degrees are taken from G.degree so
        parallel transfers count individually.

        Args:
            G: Directed graph (DiGraph or MultiDiGraph)
            timestamp_attr: Edge attribute holding the timestamp in milliseconds
            amount_attr: Edge attribute holding the amount

        Returns:
            TransactionGraph with node_labels set to the NetworkX node keys
        """
        nodes = list(G.nodes())
        index = {node: idx for idx, node in enumerate(nodes)}

        senders, receivers, timestamps, amounts = [], [], [], []
        for u, v, data in G.edges(data=True):
            senders.append(index[u])
            receivers.append(index[v])
            timestamps.append(float(data.get(timestamp_attr, np.nan)))
            amounts.append(float(data.get(amount_attr, 0.0)))

        degrees = [G.degree(node) for node in nodes]

        logger.debug(f"Snapshot graph: {len(nodes)} nodes, {len(senders)} edges")

        return cls.from_arrays(
            node_count=len(nodes),
            senders=senders,
            receivers=receivers,
            timestamps=timestamps,
            amounts=amounts,
            degrees=degrees,
            node_labels=[str(node) for node in nodes],
        )

    @property
    def edge_count(self) -> int:
        return len(self.senders)

    def label(self, node_id: int) -> str:
        if self.node_labels is not None and 0 <= node_id < len(self.node_labels):
            return self.node_labels[node_id]
        return str(node_id)

    def labels(self, node_ids: Sequence[int]) -> List[str]:
        return [self.label(node_id) for node_id in node_ids]
