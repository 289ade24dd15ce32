"""
Command-line interface for semantic recall.
"""

import argparse
import json
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from .config import load_config
from .context.semantic import build_prompt_context
from .exceptions import NotFound, SemanticRecallError
from .memory.service import PersistentMemoryService
from .memory.types import SearchOptions
from .observability.logging import LogLevel, configure_logging


def setup_logging(verbose: bool = False, json_output: bool = False, level: str = "INFO"):
    """Configure logging. --verbose overrides the configured level."""
    configure_logging(
        level=LogLevel.DEBUG if verbose else level,
        json_output=json_output,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semantic-recall",
        description="Semantic Recall - local semantic memory and context filtering",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Remember a note
  semantic-recall add "Use active voice in summaries" --source style --tags writing

  # Find notes relevant to a request
  semantic-recall search "how should summaries be written" --top-k 3

  # Build prompt context for a document, filtering pinned notes
  semantic-recall assemble draft.md --query "continue the intro" --notes-file notes.txt

  # Back up and restore
  semantic-recall export backup.json
  semantic-recall import backup.json
        """
    )

    parser.add_argument(
        "--config",
        help="Path to a YAML configuration file"
    )
    parser.add_argument(
        "--db-path",
        help="SQLite database path (overrides configuration)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Add command
    add_parser = subparsers.add_parser("add", help="Store a memory")
    add_parser.add_argument("text", help="Text to remember")
    add_parser.add_argument("--id", dest="item_id", help="Id to use (generated if omitted)")
    add_parser.add_argument("--source", help="Where the memory came from")
    add_parser.add_argument("--tags", nargs="+", help="Tags for the memory")

    # Train command
    subparsers.add_parser("train", help="Retrain on all stored memories")

    # Search command
    search_parser = subparsers.add_parser("search", help="Search memories")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("-k", "--top-k", type=int, help="Maximum number of results")
    search_parser.add_argument("--min-score", type=float, help="Minimum similarity score")
    search_parser.add_argument("--max-overlap", type=float, help="Maximum overlap with the query")
    search_parser.add_argument("--dedupe", action="store_true", help="Drop results that repeat each other")
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # Similar command
    similar_parser = subparsers.add_parser("similar", help="Find memories similar to a stored one")
    similar_parser.add_argument("item_id", help="Id of the source memory")
    similar_parser.add_argument("-k", "--top-k", type=int, default=10, help="Maximum number of results")
    similar_parser.add_argument("--min-score", type=float, default=0.5, help="Minimum similarity score")
    similar_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # Remove command
    remove_parser = subparsers.add_parser("remove", help="Delete a memory")
    remove_parser.add_argument("item_id", help="Id of the memory to delete")

    # Stats command
    subparsers.add_parser("stats", help="Show memory statistics")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export memories to a JSON file")
    export_parser.add_argument("output", help="Output file path")

    # Import command
    import_parser = subparsers.add_parser("import", help="Replace memories from a JSON export")
    import_parser.add_argument("input", help="Input file path")

    # Clear command
    clear_parser = subparsers.add_parser("clear", help="Delete all memories")
    clear_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Skip confirmation"
    )

    # Assemble command
    assemble_parser = subparsers.add_parser(
        "assemble",
        help="Print prompt context for a document and a set of notes"
    )
    assemble_parser.add_argument("document", help="Document file")
    assemble_parser.add_argument("--query", default="", help="The request the context is for")
    assemble_parser.add_argument("--cursor", type=int, help="Cursor position (defaults to end of document)")
    assemble_parser.add_argument("--note", action="append", default=[], help="A note to consider (repeatable)")
    assemble_parser.add_argument("--notes-file", help="File with one note per line")
    assemble_parser.add_argument("--max-chars", type=int, help="Character budget")
    assemble_parser.add_argument("--no-filter", action="store_true", help="Keep every note")

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(config_path=args.config, db_path=args.db_path)
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(
        args.verbose,
        args.json_logs or config.logging.json_output,
        config.logging.level,
    )

    if args.command == "assemble":
        handle_assemble(config, args)
        return

    service = PersistentMemoryService(config.persistence)
    try:
        if args.command == "add":
            handle_add(service, args)
        elif args.command == "train":
            handle_train(service)
        elif args.command == "search":
            handle_search(service, config, args)
        elif args.command == "similar":
            handle_similar(service, args)
        elif args.command == "remove":
            handle_remove(service, args)
        elif args.command == "stats":
            handle_stats(service)
        elif args.command == "export":
            handle_export(service, args)
        elif args.command == "import":
            handle_import(service, args)
        elif args.command == "clear":
            handle_clear(service, args)
    except SemanticRecallError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        service.close()


def print_results(results, as_json: bool = False):
    """Print scored results as text or JSON."""
    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        print("No memories found matching your query.")
        return

    print(f"Found {len(results)} matching memories:\n")
    for i, result in enumerate(results, 1):
        print(f"{i}. Score: {result.score:.3f}")
        print(f"   ID: {result.id}")
        preview = result.text[:100].replace("\n", " ")
        if len(result.text) > 100:
            preview += "..."
        print(f"   Text: {preview}")
        tags = result.metadata.get("tags")
        if tags:
            print(f"   Tags: {', '.join(tags)}")
        print()


def handle_add(service, args):
    """Store a memory."""
    metadata = {
        "timestamp": datetime.now(timezone.utc),
        "source": args.source,
        "tags": args.tags,
    }
    record = service.add(args.text, metadata=metadata, item_id=args.item_id)
    print(f"Stored memory {record.id}")


def handle_train(service):
    """Retrain on stored memories."""
    size = service.train()
    print(f"Trained on {len(service.manager)} memories, vocabulary size {size}")


def handle_search(service, config, args):
    """Search memories."""
    overrides = {
        "top_k": args.top_k,
        "min_score": args.min_score,
        "max_overlap": args.max_overlap,
        "dedupe_results": True if args.dedupe else None,
    }
    options = replace(
        config.search.to_options(),
        **{k: v for k, v in overrides.items() if v is not None}
    )

    print_results(service.search(args.query, options), args.json)


def handle_similar(service, args):
    """Find memories similar to a stored one."""
    options = SearchOptions(top_k=args.top_k, min_score=args.min_score)
    try:
        results = service.find_similar(args.item_id, options)
    except NotFound:
        print(f"Error: No memory with id '{args.item_id}'")
        sys.exit(1)
    print_results(results, args.json)


def handle_remove(service, args):
    """Delete a memory."""
    if service.remove(args.item_id):
        print(f"Removed memory {args.item_id}")
    else:
        print(f"No memory with id '{args.item_id}'")
        sys.exit(1)


def handle_stats(service):
    """Show memory statistics."""
    stats = service.stats()
    print("Memory statistics:")
    print(f"  Total items: {stats['total_items']}")
    print(f"  Vocabulary size: {stats['vocabulary_size']}")
    print(f"  Capacity: {stats['capacity']}")
    if stats["persistence_failures"]:
        print(f"  Persistence failures: {stats['persistence_failures']}")


def handle_export(service, args):
    """Export memories to file."""
    count = service.export_memories(args.output)
    print(f"Exported {count} memories to {args.output}")


def handle_import(service, args):
    """Import memories from file."""
    if not Path(args.input).exists():
        print(f"Error: File not found: {args.input}")
        sys.exit(1)

    try:
        count = service.import_memories(args.input)
    except (ValueError, OSError) as e:
        print(f"Error reading {args.input}: {e}")
        sys.exit(1)
    print(f"Imported {count} memories from {args.input}")


def handle_clear(service, args):
    """Clear all memories."""
    if not args.yes:
        confirm = input("Are you sure you want to clear ALL memories? This cannot be undone. [y/N]: ")
        if confirm.lower() != "y":
            print("Aborted.")
            return

    service.clear()
    print("All memories have been cleared.")


def handle_assemble(config, args):
    """Print prompt context for a document."""
    try:
        document = Path(args.document).read_text()
    except OSError as e:
        print(f"Error reading document: {e}")
        sys.exit(1)

    notes = list(args.note)
    if args.notes_file:
        try:
            lines = Path(args.notes_file).read_text().splitlines()
        except OSError as e:
            print(f"Error reading notes file: {e}")
            sys.exit(1)
        notes.extend(line.strip() for line in lines if line.strip())

    options = config.context.to_options()
    if args.max_chars is not None:
        options.max_context_chars = args.max_chars
    if args.no_filter:
        options.enable_semantic_filtering = False

    cursor = len(document) if args.cursor is None else args.cursor
    result = build_prompt_context(args.query, document, cursor, notes, options)

    print(result.context)
    stats = result.stats
    print(
        f"[{stats['filtered_items']}/{stats['total_items']} notes, "
        f"{stats['context_chars']} chars"
        f"{', unfiltered fallback' if result.used_fallback else ''}]",
        file=sys.stderr,
    )


if __name__ == "__main__":
    main()
