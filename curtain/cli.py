"""
Curtain CLI - Offline tools for stored game documents.

Usage:
    curtain inspect <state_file>              Summarize a stored game
    curtain theatre <state_file>              Print the theatre view
    curtain ack <state_file> <up_to_id> [-o]  Acknowledge events offline

A stored document is the JSON produced by Game.to_json() or
Session.stored_state.
"""

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from .api.schemas import StoredGameState
from .engine_core.game import Game


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Curtain - Truth/theatre state tools",
        prog="curtain",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Summarize a stored game")
    inspect_parser.add_argument("state_file", help="Path to stored game JSON")

    # Theatre command
    theatre_parser = subparsers.add_parser("theatre", help="Print the theatre view")
    theatre_parser.add_argument("state_file", help="Path to stored game JSON")
    theatre_parser.add_argument("--indent", type=int, default=2, help="JSON indent")

    # Ack command
    ack_parser = subparsers.add_parser("ack", help="Acknowledge animation events")
    ack_parser.add_argument("state_file", help="Path to stored game JSON")
    ack_parser.add_argument("up_to_id", type=int, help="Acknowledge events with id <= this")
    ack_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "inspect":
        return cmd_inspect(args)
    elif args.command == "theatre":
        return cmd_theatre(args)
    elif args.command == "ack":
        return cmd_ack(args)
    else:
        parser.print_help()
        return 1


def load_game(path):
    """Load and validate a stored document, then restore it."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {path}: {e}", file=sys.stderr)
        return None

    try:
        StoredGameState.model_validate(data)
    except ValidationError as e:
        print(f"Error: Not a stored game document: {path}", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return None

    return Game.restore_game(data)


def cmd_inspect(args):
    """Summarize a stored game."""
    game = load_game(args.state_file)
    if game is None:
        return 1

    print(f"Phase: {game.phase}")
    print(f"Players: {', '.join(game.player_names)}")
    print(f"Current player: {game.current_player}")
    print(f"Elements: {len(game.all())}")
    print(f"Commands in history: {len(game.command_history)}")
    print(f"Theatre lagging: {'yes' if game.is_theatre_lagging else 'no'}")

    pending = game.pending_animation_events
    print(f"Pending animation events: {len(pending)}")
    for event in pending:
        count = "-" if event.mutations is None else len(event.mutations)
        print(f"  #{event.id} {event.type} (mutations: {count})")
    return 0


def cmd_theatre(args):
    """Print the theatre view."""
    game = load_game(args.state_file)
    if game is None:
        return 1

    print(json.dumps(game.theatre_state(), indent=args.indent))
    return 0


def cmd_ack(args):
    """Acknowledge events and write the advanced document."""
    game = load_game(args.state_file)
    if game is None:
        return 1

    game.acknowledge_animation_events(args.up_to_id)
    output = json.dumps(game.to_json(include_history=True), indent=2)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"Wrote: {args.output}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
