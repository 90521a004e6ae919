"""
Canvasgraph Inspector - Tool for inspecting stored boards.

Prints the blocks and connections of a board kept in a DuckDB database and
shows the context an AI chat block would receive from its connections.
"""

import argparse
import logging
import sys
from typing import Optional

from .config import config
from .controller import GraphController
from .context import format_context_for_ai
from .errors import CanvasGraphError
from .store import DuckDBBoardStore


def setup_logging():
    """Configure logging for the inspector."""
    level = getattr(logging, config.get("logging.level", "INFO").upper(), logging.INFO)
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def list_board(controller: GraphController):
    """Print every block and connection of the loaded board."""
    print(f"\n{'='*60}")
    print(f"BOARD {controller.board_id}")
    print(f"{'='*60}")

    blocks = controller.blocks
    if not blocks:
        print("No blocks found.")
        return

    print(f"\nBlocks ({len(blocks)}):")
    print(f"{'ID':<38} {'Type':<10} {'Position':<20} {'Title':<30}")
    print("-" * 100)
    for block in blocks:
        position = f"({block.position.x:.0f}, {block.position.y:.0f})"
        print(f"{block.id:<38} {block.type.value:<10} {position:<20} {block.display_title[:30]:<30}")

    edges = controller.edges
    print(f"\nConnections ({len(edges)}):")
    titles = {block.id: block.display_title for block in blocks}
    for edge in edges:
        source = titles.get(edge.source_block_id, edge.source_block_id)
        target = titles.get(edge.target_block_id, edge.target_block_id)
        print(f"  {source} -> {target}")


def show_context(controller: GraphController, target_id: str, as_prompt: bool = False):
    """Print the context flowing into a block."""
    if controller.get_block(target_id) is None:
        print(f"Block {target_id} not found on board {controller.board_id}.")
        return

    context = controller.aggregate(target_id)
    if not context.items:
        print("Nothing is connected to this block.")
        return

    if as_prompt:
        print(format_context_for_ai(context.items))
        return

    print(context.text_context)
    if context.image_urls:
        print("\nImages:")
        for url in context.image_urls:
            print(f"  {url}")


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Canvasgraph Inspector - Tool for inspecting stored boards",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --board my-board list                    # List blocks and connections
  %(prog)s --board my-board context BLOCK_ID        # Show a chat block's context
  %(prog)s --board my-board context BLOCK_ID --prompt  # Show it as an AI prompt section
        """
    )

    parser.add_argument('--db', default=None, help='DuckDB database path (default: from config)')
    parser.add_argument('--board', required=True, help='Board id to inspect')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('list', help='List blocks and connections')

    context_parser = subparsers.add_parser('context', help='Show the context flowing into a block')
    context_parser.add_argument('target_id', help='Block receiving the context')
    context_parser.add_argument('--prompt', action='store_true', help='Format as an AI prompt section')

    args = parser.parse_args(argv)
    setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    try:
        with DuckDBBoardStore(args.db or config.duckdb_path) as store:
            store.initialize_database()
            controller = GraphController(store, args.board)
            controller.load()

            if args.command == 'list':
                list_board(controller)
            elif args.command == 'context':
                show_context(controller, args.target_id, as_prompt=args.prompt)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1
    except CanvasGraphError as e:
        print(f"\nError: {e}")
        logging.exception("Inspection failed")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
