import hashlib
from typing import Dict, Iterable, List, Sequence

from muling.constants import SENTINEL


def generate_pattern_hash(pattern_type: str, addresses: List[str]) -> str:
    sorted_addrs = sorted(addresses)
    pattern_string = f"{pattern_type}:{','.join(sorted_addrs)}"
    return hashlib.sha256(pattern_string.encode()).hexdigest()[:16]


def generate_pattern_id(pattern_type: str, pattern_hash: str) -> str:
    return f"{pattern_type}_{pattern_hash}"


def split_sequences(flat: Sequence[int]) -> List[List[int]]:
    """
    Split a sentinel-terminated flat buffer into its node sequences.

    Trailing values without a closing sentinel are discarded.
    """
    sequences = []
    current = []
    for value in flat:
        if value == SENTINEL:
            sequences.append(current)
            current = []
            continue
        current.append(int(value))
    return sequences


def flatten_sequences(sequences: Iterable[Sequence[int]]) -> List[int]:
    flat = []
    for sequence in sequences:
        flat.extend(int(v) for v in sequence)
        flat.append(SENTINEL)
    return flat


def group_pairs(flat: Sequence[int]) -> Dict[int, List[int]]:
    """
    Group a flat (focal, counterparty) pair buffer by focal node.

    Focal nodes keep their first-seen order and repeated counterparties are
    collapsed. A dangling final value is ignored.
    """
    groups: Dict[int, Dict[int, None]] = {}
    for i in range(0, len(flat) - 1, 2):
        groups.setdefault(int(flat[i]), {})[int(flat[i + 1])] = None
    return {focal: list(members) for focal, members in groups.items()}
