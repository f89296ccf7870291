#!/usr/bin/env python3
"""
Inspect a serialized graph and display what the processor needs to know.

Displays information like:
- Source size
- Named inputs (the feed names the graph accepts)
- Output convention and forward signature
- Parameter count
"""

import argparse
import json
import os
import sys

# ensure repository root is on sys.path so `import graphlabel` works when running this script
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from graphlabel.errors import GraphLoadError
from graphlabel.evaluation.evaluator import DEFAULT_OUTPUT_NAME
from graphlabel.evaluation.graph_store import GraphStore
from graphlabel.shared.resources import read_bytes


def format_size(size_bytes):
    """Format file size in human-readable format."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} TB"


def describe_graph(location):
    """Load the graph at `location`. Returns (JSON-serializable summary, forward code)."""
    data = read_bytes(location)
    with GraphStore.load(data, source=str(location)) as store:
        module = store.graph
        info = {
            'source': str(location),
            'size_bytes': len(data),
            'inputs': list(store.input_names),
            'signature': str(module.forward.schema),
            'parameters': sum(p.numel() for p in module.parameters()),
            'default_output_name': DEFAULT_OUTPUT_NAME,
        }
        return info, module.code


def print_summary(info, show_code=False, code=None):
    print("=" * 70)
    print(f"📦 GRAPH: {info['source']}")
    print("=" * 70)
    print(f"Size: {format_size(info['size_bytes'])}")
    print(f"Parameters: {info['parameters']:,}")
    print()
    print("📥 Inputs:")
    print("-" * 70)
    for name in info['inputs']:
        print(f"  • {name}")
    print()
    print("📤 Outputs:")
    print("-" * 70)
    print(f"  Signature: {info['signature']}")
    print(f"  A dict result exposes its keys as output names; any other result is '{info['default_output_name']}'")
    print()
    if show_code and code:
        print("🧾 Forward code:")
        print("-" * 70)
        print(code)
    print("=" * 70)


def main():
    parser = argparse.ArgumentParser(description='Inspect a serialized graph')
    parser.add_argument('graph', help='Graph location (path, file://, http(s):// or package://)')
    parser.add_argument('--show-code', action='store_true', help='Print the TorchScript code of forward()')
    parser.add_argument('--json', action='store_true', help='Output as JSON')
    args = parser.parse_args()

    try:
        info, code = describe_graph(args.graph)
    except (GraphLoadError, OSError) as e:
        if args.json:
            print(json.dumps({'error': str(e)}))
        else:
            print(f"❌ Error loading graph: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps(info, indent=2))
        return

    print_summary(info, show_code=args.show_code, code=code)


if __name__ == '__main__':
    main()
