"""
Pattern detector modules for structural analysis.
Each detector specializes in identifying specific patterns.
"""

from .fan_in_detector import FanInDetector, detect_fan_in
from .fan_out_detector import FanOutDetector, detect_fan_out
from .cycle_detector import CycleDetector, detect_cycles
from .shell_chain_detector import ShellChainDetector, detect_shell_chains

__all__ = [
    'FanInDetector',
    'FanOutDetector',
    'CycleDetector',
    'ShellChainDetector',
    'detect_fan_in',
    'detect_fan_out',
    'detect_cycles',
    'detect_shell_chains'
]
