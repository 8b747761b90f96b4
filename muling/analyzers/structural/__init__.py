"""
Structural pattern analysis module.
Provides orchestration and specialized detectors for identifying suspicious transaction patterns.
"""

from .structural_pattern_analyzer import StructuralPatternAnalyzer
from .base_detector import BasePatternDetector
from .graph_builder import TransactionGraph
from .detectors import (
    FanInDetector,
    FanOutDetector,
    CycleDetector,
    ShellChainDetector,
    detect_fan_in,
    detect_fan_out,
    detect_cycles,
    detect_shell_chains
)

__all__ = [
    'StructuralPatternAnalyzer',
    'BasePatternDetector',
    'TransactionGraph',
    'FanInDetector',
    'FanOutDetector',
    'CycleDetector',
    'ShellChainDetector',
    'detect_fan_in',
    'detect_fan_out',
    'detect_cycles',
    'detect_shell_chains'
]
