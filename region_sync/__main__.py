"""CLI entry point for Region Sync.

Usage:
    python -m region_sync paths [--match ID] [--region NAME ...]
    python -m region_sync demo [--root DIR] [--match ID] [--json]
    python -m region_sync show --root DIR [--match ID] [--json]

Commands:
    paths     Print the remote slot path of each region
    demo      Two simulated players sharing card areas through one store
    show      Print the cards stored in a file store
"""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Callable, Dict, List

from region_sync import (
    Card,
    DecodeFailure,
    ElementCodec,
    ObservableRegion,
    SyncConfig,
    SyncController,
    __version__,
)
from region_sync.stores import get_store
from region_sync.sync.records import RecordConverter
from region_sync.utils.logging import configure_root_logger


def setup_logging(verbose: bool = False, json_output: bool = False) -> None:
    """Configure logging for CLI output."""
    configure_root_logger(level="DEBUG" if verbose else "WARNING", json_output=json_output)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def format_cards(cards: List[Card]) -> str:
    return "[" + ", ".join(str(card) for card in cards) + "]"


def cmd_paths(args: argparse.Namespace) -> int:
    """Handle the 'paths' command - print slot paths.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        config = SyncConfig(match_id=args.match, path_template=args.template)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for region in args.region or config.regions:
        print(f"{region}: {config.slot_path(region)}")
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    """Handle the 'demo' command - two players, one store.

    Player one lays 7H and 2H in area one; player two replaces area one
    with 9H. Both players end with the same areas and exactly one write per
    change.

    Returns:
        Exit code (0 when both players converged, 1 otherwise)
    """
    if args.root:
        store = get_store("file", root=Path(args.root), poll_interval=0.05)
        settle = lambda: time.sleep(0.3)
    else:
        store = get_store("memory", threaded=True)
        settle = lambda: store.drain()

    config = SyncConfig(match_id=args.match, dispose_on_exit=False)
    codec = ElementCodec.for_type(Card)
    players: Dict[str, Dict[str, ObservableRegion]] = {}
    controllers: Dict[str, SyncController] = {}

    def report(failure):
        print(f"  ! {failure.kind.value} failure in {failure.region}: {failure.message}")

    try:
        for player in ("player_one", "player_two"):
            areas = {name: ObservableRegion(f"{player}.{name}") for name in config.regions}
            players[player] = areas
            controllers[player] = SyncController(store, areas, codec, config=config, on_failure=report)
        settle()

        def converged(expected: List[Card]) -> bool:
            return all(p["area_one"].snapshot() == expected for p in players.values())

        print("[1] player_one lays 7H, 2H in area_one")
        players["player_one"]["area_one"].replace([Card.parse("7H"), Card.parse("2H")])
        settle()
        ok = wait_until(lambda: converged([Card("hearts", 7), Card("hearts", 2)]))

        print("[2] player_two replaces area_one with 9H")
        players["player_two"]["area_one"].replace([Card.parse("9H")])
        settle()
        ok = wait_until(lambda: converged([Card("hearts", 9)])) and ok

        statuses = {player: controller.status() for player, controller in controllers.items()}
        if args.json:
            print(json.dumps(statuses, indent=2, default=str))
        else:
            for player, areas in players.items():
                print(f"  [{player}]")
                for name, region in areas.items():
                    stats = statuses[player]["regions"][name]["stats"]
                    print(
                        f"    {name}: {format_cards(region.snapshot())} "
                        f"(writes {stats['writes_issued']}, applied {stats['snapshots_applied']})"
                    )

        print("Converged." if ok else "Players did not converge.")
        return 0 if ok else 1
    finally:
        for controller in controllers.values():
            controller.dispose()
        store.close()


def cmd_show(args: argparse.Namespace) -> int:
    """Handle the 'show' command - print cards in a file store.

    Returns:
        Exit code (0 for success, 1 if any slot failed to decode)
    """
    root = Path(args.root)
    if not root.is_dir():
        print(f"Error: not a directory: {root}", file=sys.stderr)
        return 1

    store = get_store("file", root=root)
    converter = RecordConverter(ElementCodec.for_type(Card), field_name=args.field)
    result = {}
    exit_code = 0

    try:
        for path in store.slot_paths():
            if args.match and f"/{args.match}/" not in f"/{path}/":
                continue
            snapshot = store.slot(path, converter).get()
            try:
                cards = converter.from_record(snapshot.data)
                result[path] = [str(card) for card in cards]
            except DecodeFailure as e:
                result[path] = {"error": str(e)}
                exit_code = 1
    finally:
        store.close()

    if args.json:
        print(json.dumps(result, indent=2))
    elif not result:
        print("  No slots found.")
    else:
        for path, cards in result.items():
            if isinstance(cards, dict):
                print(f"{path}: <{cards['error']}>")
            else:
                print(f"{path}: [{', '.join(cards)}]")

    return exit_code


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="region_sync",
        description="Region Sync - keep card game areas in sync through a document store",
    )
    parser.add_argument(
        "--version", action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--json-logs", action="store_true",
        help="Write logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # paths command
    paths_parser = subparsers.add_parser("paths", help="Print slot paths")
    paths_parser.add_argument("--match", default="match_1", help="Match id (default: match_1)")
    paths_parser.add_argument(
        "--template", default=SyncConfig.path_template,
        help="Slot path template with {match_id} and {region}"
    )
    paths_parser.add_argument("--region", action="append", help="Region name (repeatable)")

    # demo command
    demo_parser = subparsers.add_parser("demo", help="Run the two-player demo")
    demo_parser.add_argument("--root", help="Use a file store in this directory (default: memory)")
    demo_parser.add_argument("--match", default="match_1", help="Match id (default: match_1)")
    demo_parser.add_argument("--json", action="store_true", help="Output status as JSON")

    # show command
    show_parser = subparsers.add_parser("show", help="Print cards in a file store")
    show_parser.add_argument("--root", required=True, help="File store directory")
    show_parser.add_argument("--match", help="Only slots of this match")
    show_parser.add_argument("--field", default=SyncConfig.field_name, help="Record field name")
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(verbose=args.verbose, json_output=args.json_logs)

    commands = {
        "paths": cmd_paths,
        "demo": cmd_demo,
        "show": cmd_show,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
