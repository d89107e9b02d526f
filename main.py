"""
SurvivorPool - Tournament progression and elimination engine

Command-line entry point for operators and scheduled jobs.
"""

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path

from config import init_config, configure_logging, APP_NAME, APP_VERSION

logger = logging.getLogger(APP_NAME)


def _app(args):
    from app import SurvivorPoolApp
    return SurvivorPoolApp(database_url=args.db)


def _parse_instant(value: str) -> datetime:
    instant = datetime.fromisoformat(value)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


# ============ Commands ============

def cmd_init_db(args):
    _app(args)
    print("Database ready")


def cmd_generate_bracket(args):
    app = _app(args)
    result = app.generate_bracket_from_file(
        Path(args.teams_file),
        date.fromisoformat(args.start_date),
        split_days=not args.single_day_rounds,
    )
    print(f"Created {result.teams_created} teams, {result.rounds_created} rounds, "
          f"{result.games_created} games, {result.advancements_wired} advancement edges")


def cmd_create_pool(args):
    pool_id = _app(args).create_pool(args.name)
    print(f"Pool {pool_id} created")


def cmd_add_entry(args):
    entry_id = _app(args).add_entry(args.pool_id, args.user_id, args.label)
    print(f"Entry {entry_id} added")


def cmd_pick(args):
    pick_id = _app(args).make_pick(args.entry_id, args.round_id, args.team_id)
    print(f"Pick {pick_id} saved")


def cmd_start(args):
    started = _app(args).processor.start_tournament()
    print(f"{started} pool(s) active")


def cmd_finalize(args):
    results = _app(args).processor.finalize_game(
        args.game_id, args.winner_id, args.team1_score, args.team2_score,
    )
    print(results.model_dump_json(indent=2))


def cmd_complete_round(args):
    result = _app(args).processor.complete_round(args.round, mode=args.mode)
    print(result.model_dump_json(indent=2))


def cmd_set_clock(args):
    processor = _app(args).processor
    if args.phase:
        if args.round is None:
            raise SystemExit("--phase requires --round")
        instant = processor.set_clock_for_phase(args.round, args.phase)
        print(f"Clock set to {instant.isoformat()}")
    elif args.instant == "off":
        processor.set_simulated_clock(None)
        print("Clock returned to real time")
    elif args.instant:
        instant = _parse_instant(args.instant)
        processor.set_simulated_clock(instant)
        print(f"Clock set to {instant.isoformat()}")
    else:
        raise SystemExit("Give an ISO instant, 'off', or --round with --phase")


def cmd_rewind(args):
    target = args.target if args.target == "all" else int(args.target)
    summary = _app(args).processor.rewind_round(target)
    print(summary.model_dump_json(indent=2))


def cmd_status(args):
    state = _app(args).state()
    print(f"Tournament: {state.status.value}")
    for info in state.rounds:
        marker = "*" if state.current_round and info.id == state.current_round.id else " "
        deadline = info.deadline.isoformat() if info.deadline else "-"
        print(f"{marker} [{info.id:>2}] {info.name:<22} {info.status.value:<15} "
              f"{info.games_final}/{info.games_total} final  deadline {deadline}")


def cmd_standings(args):
    standings = _app(args).standings(args.pool_id)
    print(f"{standings.pool_name} ({standings.pool_status.value}): "
          f"{standings.alive_entries} alive / {standings.total_entries} entries")
    if standings.winner_user_ids:
        print(f"Winners: {', '.join(standings.winner_user_ids)}")
    for row in standings.entries:
        status = "alive" if not row.is_eliminated else (
            f"out ({row.elimination_cause.value}, {row.elimination_round_name})"
        )
        print(f"  {row.user_id:<20} {row.correct_picks}/{row.picks_count} correct  {status}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="survivor-pool", description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--db", default=None, help="SQLAlchemy database URL (default: local SQLite)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--no-log-file", action="store_true", help="Log to the console only")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create the database schema")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("generate-bracket", help="Create teams, rounds and all 63 games")
    p.add_argument("teams_file", help="JSON list of 64 teams")
    p.add_argument("--start-date", required=True, help="First day of the Round of 64 (YYYY-MM-DD)")
    p.add_argument("--single-day-rounds", action="store_true", help="One round per stage")
    p.set_defaults(func=cmd_generate_bracket)

    p = sub.add_parser("create-pool", help="Create a pool")
    p.add_argument("name")
    p.set_defaults(func=cmd_create_pool)

    p = sub.add_parser("add-entry", help="Add an entry to a pool")
    p.add_argument("pool_id", type=int)
    p.add_argument("user_id")
    p.add_argument("--label", default=None)
    p.set_defaults(func=cmd_add_entry)

    p = sub.add_parser("pick", help="Submit or change a pick")
    p.add_argument("entry_id", type=int)
    p.add_argument("round_id", type=int)
    p.add_argument("team_id", type=int)
    p.set_defaults(func=cmd_pick)

    p = sub.add_parser("start", help="Activate open pools")
    p.set_defaults(func=cmd_start)

    p = sub.add_parser("finalize", help="Record a final result")
    p.add_argument("game_id", type=int)
    p.add_argument("winner_id", type=int)
    p.add_argument("--team1-score", type=int, default=None)
    p.add_argument("--team2-score", type=int, default=None)
    p.set_defaults(func=cmd_finalize)

    p = sub.add_parser("complete-round", help="Simulate every pending game of a round")
    p.add_argument("--round", type=int, default=None, help="Round id (default: current round)")
    p.add_argument("--mode", choices=["favorites", "random"], default="favorites")
    p.set_defaults(func=cmd_complete_round)

    p = sub.add_parser("set-clock", help="Set or clear the simulated clock")
    p.add_argument("instant", nargs="?", default=None, help="ISO instant, or 'off'")
    p.add_argument("--round", type=int, default=None)
    p.add_argument("--phase", choices=["pre_round", "live", "post_round"], default=None)
    p.set_defaults(func=cmd_set_clock)

    p = sub.add_parser("rewind", help="Undo a round, or 'all'")
    p.add_argument("target", help="Round id or 'all'")
    p.set_defaults(func=cmd_rewind)

    p = sub.add_parser("status", help="Show derived tournament status")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("standings", help="Show pool standings")
    p.add_argument("pool_id", type=int)
    p.set_defaults(func=cmd_standings)

    return parser


def main(argv=None) -> int:
    """Main entry point for SurvivorPool."""
    args = build_parser().parse_args(argv)

    # Initialize configuration and directories
    init_config()
    configure_logging(
        level=logging.DEBUG if args.verbose else None,
        log_to_file=False if args.no_log_file else None,
    )

    try:
        args.func(args)
    except (ValueError, RuntimeError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
