from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from dotenv import load_dotenv

from tablegen.config import CodegenConfig, load_config
from tablegen.codegen.processor import RoundResult, generate_from_sources


def run() -> None:
    """Main CLI entry point."""
    # Load environment variables first
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="tablegen",
        description="tablegen - typed table accessors generated from marked model classes"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration YAML file (default: $TABLEGEN_CONFIG or ./tablegen.yaml)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    # Generate
    gen = sub.add_parser("generate", help="Generate accessors for all marked classes")
    gen.add_argument("roots", nargs="*", help="Source roots to scan (default: from config)")
    gen.add_argument("--out", default=None, help="Output directory (default: from config)")
    gen.add_argument("--dry-run", action="store_true", help="Render without writing files")

    # Schema
    schema = sub.add_parser("schema", help="Show table classification and columns")
    schema.add_argument("roots", nargs="*", help="Source roots to scan (default: from config)")
    schema.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    # Watch
    watch = sub.add_parser("watch", help="Regenerate whenever model sources change")
    watch.add_argument("roots", nargs="*", help="Source roots to watch (default: from config)")
    watch.add_argument("--out", default=None, help="Output directory (default: from config)")
    watch.add_argument("--debounce-ms", type=int, default=None, help="Debounce delay in milliseconds")

    args = parser.parse_args()

    try:
        config = load_config(args.config)
        overrides = {}
        if getattr(args, "out", None):
            overrides["output_dir"] = args.out
        if getattr(args, "roots", None):
            overrides["source_roots"] = args.roots
        if overrides:
            config = config.model_copy(update=overrides)

        configure_logging(config, args.verbose)

        if args.cmd == "generate":
            code = generate(config, args.dry_run)
        elif args.cmd == "schema":
            code = show_schema(config, args.json)
        elif args.cmd == "watch":
            debounce_ms = args.debounce_ms or config.watch.debounce_ms
            code = asyncio.run(watch_sources(config, debounce_ms))
        else:
            code = 2
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


def configure_logging(config: CodegenConfig, verbose: bool = False) -> None:
    """Configure root logging from the config."""
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper())
    logging.basicConfig(
        level=level,
        format=config.logging.format,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ],
        force=True,
    )


def report(result: RoundResult) -> int:
    """Print a round's diagnostics and summary; return the exit code."""
    for line in result.diagnostics.lines():
        print(line, file=sys.stderr)

    print(
        f"{len(result.models)} entities, {len(result.files)} files"
        f"{'' if result.written else ' (not written)'}, "
        f"{len(result.diagnostics.errors)} error(s), {len(result.diagnostics.warnings)} warning(s)"
    )
    return 1 if result.failed else 0


def generate(config: CodegenConfig, dry_run: bool = False) -> int:
    """Run one generation round over the configured source roots.

    Returns:
        Exit code: 0 on success, 1 if any schema error was reported
    """
    result = generate_from_sources(config, dry_run=dry_run)
    return report(result)


def describe_schema(config: CodegenConfig) -> tuple[list[dict], list[str], bool]:
    """Classify entities and build their columns without writing anything.

    Returns:
        Tuple of (entity descriptions, diagnostic lines, failed)
    """
    result = generate_from_sources(config, dry_run=True)

    described = []
    for model in result.models:
        described.append({
            "entity": model.qualified_name,
            "classification": result.schema.classify(model.qualified_name).value,
            "columns": [c.as_template_dict() for c in model.columns],
        })

    return described, result.diagnostics.lines(), result.failed


def show_schema(config: CodegenConfig, as_json: bool = False) -> int:
    """Print the classification and column list of every entity."""
    described, diagnostics, failed = describe_schema(config)

    if as_json:
        print(json.dumps({"entities": described, "diagnostics": diagnostics}, indent=2))
        return 1 if failed else 0

    for entity in described:
        print(f"\n{entity['entity']} ({entity['classification']})")
        print("-" * 60)
        if not entity["columns"]:
            print("  (no columns)")
        for column in entity["columns"]:
            target = f" -> {column['link_target']}" if column["is_link"] else ""
            print(f"  {column['index']:>3}  {column['name']:<24} {column['type']}{target}")

    for line in diagnostics:
        print(line, file=sys.stderr)
    return 1 if failed else 0


async def watch_sources(config: CodegenConfig, debounce_ms: int) -> int:
    """Generate once, then regenerate on every debounced change until interrupted."""
    from tablegen.codegen.watcher import SourceWatcher

    watcher = SourceWatcher(
        config,
        [Path(root) for root in config.source_roots],
        debounce_ms=debounce_ms,
        on_round=report,
    )
    watcher.run_round()

    watcher.start()
    print("Watcher started. Press Ctrl+C to stop.")
    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await watcher.stop()

    return 0
