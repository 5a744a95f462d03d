# src/mutator/app.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from tqdm import tqdm

from mutator.core.managers.config_manager import config_manager
from mutator.core.utils.configure_logging import configure_logger
from mutator.dom.document import MarkupDocument
from mutator.dom.summarizer import summarize_source
from mutator.dom.validator import validate_markup
from mutator.errors import InvalidInputError, MutatorError
from mutator.services.action_applier_service import ActionApplierService

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    configure_logger(
        config_manager.get_nested("debug.level", "INFO"),
        config_manager.get_nested("debug.module_levels"),
        config_manager.get_nested("debug.silenced"),
    )


def load_actions(path: Path) -> List[Any]:
    """Reads an action list from a `{"actions": [...]}` object or a bare JSON array."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise InvalidInputError(f"Could not read actions from {path}", detail=str(e)) from e

    if isinstance(data, dict):
        data = data.get("actions")
    if not isinstance(data, list):
        raise InvalidInputError(f"{path} does not contain an actions array")
    return data


# --- Sub-commands ---

def cmd_serve(args: argparse.Namespace) -> int:
    from mutator.server.app import create_app

    host = args.host or config_manager.get_nested("server.host", "0.0.0.0")
    port = args.port or config_manager.get_nested("server.port", 5000)
    app = create_app()

    print("\n" + "=" * 50)
    print("🚀  MUTATOR | Edit Server")
    print("=" * 50)
    print(f"📡  Listening on: http://{host}:{port}")
    for rule in app.url_map.iter_rules():
        if rule.endpoint != "static":
            print(f"   ✅ {rule}")
    print("-" * 50 + "\n")

    app.run(host=host, port=port, debug=False, use_reloader=False)
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    actions = load_actions(Path(args.actions))
    applier = ActionApplierService()
    results = {}
    exit_code = 0

    for file_name in tqdm(args.files, desc="Applying actions", unit="file", disable=len(args.files) < 2):
        path = Path(file_name)
        try:
            document = MarkupDocument(path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.error("Cannot read %s: %s", path, e)
            exit_code = 1
            continue

        outcomes = applier.apply(document, actions)
        mutated = document.serialize()
        try:
            validate_markup(mutated)
        except MutatorError as e:
            # The file is left untouched; remaining files are still processed
            logger.error("Skipping %s: %s", path, e.message)
            results[str(path)] = e.to_payload()
            exit_code = 1
            continue

        if args.in_place:
            path.write_text(mutated, encoding="utf-8")
        results[str(path)] = [o.to_dict() for o in outcomes]

    print(json.dumps(results, indent=2, ensure_ascii=False))
    return exit_code


def cmd_config(_args: argparse.Namespace) -> int:
    """Prints the effective configuration, `--set` overrides included."""
    print(json.dumps(config_manager.get_all(), indent=2, ensure_ascii=False))
    return 0


def cmd_summarize(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"❌ Error: Cannot read {path}: {e}")
        return 1
    max_nodes = args.max_nodes or config_manager.get_nested("summarizer.max_nodes")
    print(json.dumps(summarize_source(source, max_nodes=max_nodes), indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mutator", description="Structural markup mutation engine.")
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
        help="Override a settings.json value for this run (e.g. --set server.diagnostics=true)."
    )
    subs = parser.add_subparsers(dest="subcommand")

    p_serve = subs.add_parser("serve", help="Start the HTTP edit server.")
    p_serve.add_argument("--host", type=str, default=None, help="Host interface to bind to.")
    p_serve.add_argument("--port", type=int, default=None, help="Port to bind the server to.")
    p_serve.set_defaults(func=cmd_serve)

    p_apply = subs.add_parser("apply", help="Apply an action list JSON file to markup files.")
    p_apply.add_argument("actions", help="Path to a JSON file with {\"actions\": [...]} or a bare list.")
    p_apply.add_argument("files", nargs="+", help="Markup files to edit.")
    p_apply.add_argument("--in-place", action="store_true", help="Write the mutated markup back to each file.")
    p_apply.set_defaults(func=cmd_apply)

    p_sum = subs.add_parser("summarize", help="Print the structure outline of a markup file.")
    p_sum.add_argument("file", help="Markup file to summarize.")
    p_sum.add_argument("--max-nodes", type=int, default=None,
                       help="Maximum outline entries (default: summarizer.max_nodes).")
    p_sum.set_defaults(func=cmd_summarize)

    p_config = subs.add_parser("config", help="Print the effective configuration as JSON.")
    p_config.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config_manager.apply_overrides(args.overrides)
    except ValueError as e:
        print(f"❌ Error: Invalid --set override: {e}")
        return 1
    _setup_logging()

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except MutatorError as e:
        print(f"❌ Error [{e.code}]: {e.message}")
        if e.detail:
            print(f"   {e.detail}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
