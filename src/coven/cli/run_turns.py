from __future__ import annotations

import argparse
import logging
from collections import Counter
from typing import Sequence

from coven.content.config import GameConfig, load_config_toml
from coven.content.io import load_game_json, save_game_json
from coven.sim.core import Game
from coven.sim.hash import state_hash

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError("turns must be >= 0")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coven-turns",
        description=(
            "Deterministic turn runner. Starts a new game from a seed or TOML config, or resumes "
            "a canonical save, then advances N turns and prints state hashes."
        ),
    )
    parser.add_argument("save_path", nargs="?", help="Optional canonical game save JSON to resume from")
    parser.add_argument("--seed", type=int, help="Master seed for a new game (overrides the config seed)")
    parser.add_argument("--config", help="TOML game config for a new game")
    parser.add_argument("--turns", type=_non_negative_int, default=1, help="Turns to advance")
    parser.add_argument("--per-turn", action="store_true", help="Print the state hash after each turn")
    parser.add_argument(
        "--print-journal",
        type=_non_negative_int,
        default=0,
        metavar="N",
        help="Print the newest N journal entries after the run",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING", help="Logging level")
    parser.add_argument("--dump-final-save", help="Optional path to write canonical save payload after the run")
    return parser


def _build_game(args: argparse.Namespace) -> Game:
    if args.save_path:
        if args.seed is not None or args.config:
            raise ValueError("--seed and --config only apply to new games")
        return load_game_json(args.save_path)
    config = load_config_toml(args.config) if args.config else GameConfig()
    if args.seed is not None:
        config = GameConfig.from_dict({**config.to_dict(), "seed": args.seed})
    return Game(config)


def _print_header(game: Game) -> None:
    clock = game.state.clock
    print(
        "header "
        f"seed={game.master_seed} "
        f"turn={clock.turn} "
        f"date={clock.date_label().replace(' ', '_')} "
        f"players={len(game.state.players)} "
        f"journal_length={len(game.state.journal)}"
    )


def _print_journal(game: Game, limit: int) -> None:
    entries = game.state.journal[-limit:]
    if not entries:
        print("journal none")
        return
    for entry in entries:
        print(f"journal turn={entry.turn} category={entry.category} text={entry.text}")
    counts = Counter(entry.category for entry in game.state.journal)
    print("journal_summary " + " ".join(f"{category}={counts[category]}" for category in sorted(counts)))


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        game = _build_game(args)
        _print_header(game)

        print(f"start_hash={state_hash(game)}")
        if args.per_turn and args.turns > 0:
            for _ in range(args.turns):
                game.advance_turn()
                print(f"turn={game.state.clock.turn} hash={state_hash(game)}")
        else:
            game.advance_turns(args.turns)
        print(f"end_hash={state_hash(game)}")

        if args.print_journal:
            _print_journal(game, args.print_journal)

        if args.dump_final_save:
            save_game_json(args.dump_final_save, game)
            print(f"dumped_final_save={args.dump_final_save}")

    except Exception as exc:
        print(f"error: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
