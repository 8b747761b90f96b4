#!/usr/bin/env python3
"""Developer entry point for detecting structural patterns with predefined parameters"""
import sys

if __name__ == "__main__":
    sys.argv = [
        'run_detect_structural_patterns.py',
        '--graph', 'data/transactions.json',
        '--network', 'torus',
        '--output', 'data/structural_patterns.json'
    ]

    from scripts.tasks.run_detect_structural_patterns import main
    main()
