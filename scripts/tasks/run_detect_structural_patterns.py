#!/usr/bin/env python3
import argparse
import json
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from networkx.readwrite import json_graph

from muling import setup_logger
from muling.analyzers.structural import StructuralPatternAnalyzer, TransactionGraph


def main():
    parser = argparse.ArgumentParser(description='Detect Structural Patterns Task')
    parser.add_argument('--graph', required=True, help='Transaction graph in NetworkX node-link JSON format')
    parser.add_argument('--network', default=None, help='Network name for configuration overrides')
    parser.add_argument('--config', default=None, help='Custom structural pattern settings file')
    parser.add_argument('--output', default=None, help='Write the analysis result to this JSON file')
    args = parser.parse_args()

    load_dotenv()

    service_name = f'muling-{args.network or "default"}-detect-structural-patterns'
    setup_logger(service_name)

    with open(args.graph, 'r') as f:
        data = json.load(f)
    G = json_graph.node_link_graph(data, directed=True, multigraph=True)
    graph = TransactionGraph.from_networkx(G)

    analyzer = StructuralPatternAnalyzer(config_path=args.config, network=args.network)
    result = analyzer.analyze(graph)

    for ring in result['fraud_rings']:
        logger.info(f"{ring['ring_id']} [{ring['pattern_type']}] risk={ring['risk_score']}: "
                    f"{ring.get('display') or ', '.join(ring['member_accounts'])}")

    if args.output:
        Path(args.output).write_text(json.dumps(result, indent=2, ensure_ascii=False))
        logger.info(f"Wrote analysis result to {args.output}")


if __name__ == "__main__":
    main()
