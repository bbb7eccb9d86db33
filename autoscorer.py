#!/usr/bin/env python3
"""
Three Man League Autoscorer CLI

Runs pick intake, the lock sweep, weekly scoring, standings and backfill against
a JSON store file (data/store.json by default).

Usage:
    python autoscorer.py sync-schedule
    python autoscorer.py sync-players
    python autoscorer.py init-league smith-family --name "Smith Family" --member u1=Alice --member u2=Bob
    python autoscorer.py submit smith-family 3 u1 --qb 00-0033873:2025_03_KC_NYG
    python autoscorer.py lock-sweep --interval 300
    python autoscorer.py score-week smith-family 3 --update-standings
    python autoscorer.py standings smith-family
    python autoscorer.py enable-backfill smith-family 1 4
    python autoscorer.py backfill-week smith-family 2 --by admin --workbook backfill.xlsx --sheet "Week 2"
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from threeman import (
    BackfillService,
    LeagueStore,
    PickService,
    ThreeManError,
    UsageLedger,
    WeeklyScorer,
    get_provider,
    parse_backfill_workbook,
    recompute_standings,
    sync_players,
    sync_schedule,
)
from threeman.config import get_config
from threeman.logging_config import setup_logging
from threeman.models import BackfillMemberPick

logger = logging.getLogger('threeman.cli')

DEFAULT_STORE = Path('data') / 'store.json'


def parse_selection(value: str) -> dict:
    """Parse a PLAYER_ID:GAME_ID argument."""
    player_id, sep, game_id = value.partition(':')
    if not sep:
        raise argparse.ArgumentTypeError(f'expected PLAYER_ID:GAME_ID, got {value!r}')
    return {'player_id': player_id, 'game_id': game_id}


def parse_member(value: str) -> tuple[str, str]:
    """Parse a PARTICIPANT_ID=Display Name argument."""
    participant_id, _, display_name = value.partition('=')
    return participant_id, display_name or participant_id


def load_member_picks(path: Path) -> list[BackfillMemberPick]:
    """Load backfill entries from a JSON list of {participant_id, player_ids, point_overrides}."""
    with open(path) as f:
        data = json.load(f)
    return [
        BackfillMemberPick(
            participant_id=item['participant_id'],
            player_ids=item.get('player_ids', {}),
            point_overrides=item.get('point_overrides', {}),
        )
        for item in data
    ]


def cmd_init_league(args, store, config):
    members = dict(parse_member(m) for m in args.member)
    league = store.initialize_league(args.league, args.name, args.season, members, config)
    print(f'Created league {league.league_id} ({league.season}) with {len(members)} members')
    return True


def cmd_submit(args, store, config):
    selections = {
        slot: selection
        for slot, selection in (('QB', args.qb), ('RB', args.rb), ('WR', args.wr))
        if selection
    }
    result = PickService(store, config=config).submit_picks(
        args.league, args.week, args.participant, selections
    )
    for slot in result.accepted:
        print(f'  ✓ {slot}')
    for reason in result.skipped:
        print(f'  ✗ {reason}')
    return bool(result.accepted)


def cmd_lock_sweep(args, store, config):
    service = PickService(store, config=config)
    if not args.interval:
        print(f'Locked {service.sweep_locks()} slots')
        return True

    logger.info(f'Running lock sweep every {args.interval}s')
    while True:
        if service.sweep_locks():
            store.save()
        time.sleep(args.interval)


def cmd_score_week(args, store, config):
    scorer = WeeklyScorer(store, get_provider(config), config=config)
    result = scorer.score_week(args.league, args.week)

    print(f'\n{"=" * 60}')
    print(f'WEEK {args.week} SCORES')
    print('=' * 60)
    for participant in sorted(result.participants, key=lambda p: p.total_points, reverse=True):
        flags = []
        if participant.double_pick_positions:
            flags.append(f'double pick: {", ".join(participant.double_pick_positions)}')
        if participant.unscored_positions:
            flags.append(f'unscored: {", ".join(participant.unscored_positions)}')
        suffix = f'  ⚠️  {"; ".join(flags)}' if flags else ''
        print(f'  {participant.participant_id}: {participant.total_points:.1f} pts{suffix}')

    if not result.complete:
        print(f'\n⚠️  Stats unavailable for {len(result.games_failed)} games; re-run to finish scoring')
    elif not result.final:
        print(f'\n⏳ {len(result.games_unfinished)} games not final yet; week stays in scoring')

    if args.update_standings:
        recompute_standings(store, args.league)
        print('Standings updated')
    return True


def cmd_standings(args, store, config):
    standings = store.list_standings(args.league)
    if args.recompute or not standings:
        standings = recompute_standings(store, args.league)

    print(f'\n{"=" * 60}')
    print('SEASON STANDINGS')
    print('=' * 60)
    for s in standings:
        best = f'best wk {s.best_week}: {s.best_week_points:.1f}' if s.best_week else 'no weeks'
        payout = f'  ${s.payout:,.2f}' if s.payout else ''
        print(
            f'  {s.rank}. {s.display_name}: {s.season_total_points:.2f} pts '
            f'({s.weeks_played} wks, {best}){payout}'
        )
    return args.recompute or bool(standings)


def cmd_used_players(args, store, config):
    league = store.get_league(args.league)
    if league is None:
        raise ThreeManError(f'unknown league: {args.league}')
    for record in UsageLedger(store).usage_for(args.league, league.season, args.participant):
        player = store.get_player(record.player_id)
        name = player.name if player else record.player_id
        backfilled = ' (backfilled)' if record.is_backfilled else ''
        print(f'  Week {record.first_used_week}: {name}{backfilled}')
    return False


def cmd_enable_backfill(args, store, config):
    service = BackfillService(store, get_provider(config), config=config)
    service.enable_backfill(args.league, args.from_week, args.to_week)
    print(f'Backfill enabled for weeks {args.from_week}-{args.to_week}')
    return True


def cmd_backfill_week(args, store, config):
    if args.workbook:
        member_picks = parse_backfill_workbook(args.workbook, args.sheet or f'Week {args.week}', store)
    else:
        member_picks = load_member_picks(Path(args.picks))

    service = BackfillService(store, get_provider(config), config=config)
    result = service.backfill_week(args.league, args.week, member_picks, args.by)

    for member in result.results:
        status = '✓' if member.written else '✗'
        print(f'  {status} {member.display_name}: {member.total_points:.1f} pts')
        for error in member.errors:
            print(f'      ❌ {error}')
        for warning in member.warnings:
            print(f'      ⚠️  {warning}')
    print(
        f'\nWeek {args.week}: {result.written} written, '
        f'{result.error_count} errors, {result.warning_count} warnings'
    )
    return True


def cmd_backfill_status(args, store, config):
    report = BackfillService(store, get_provider(config), config=config).backfill_status(args.league)
    print(f'Backfill {report.overall_status} (weeks {report.from_week}-{report.to_week})')
    for week in report.weeks:
        by = f' by {week.backfilled_by}' if week.backfilled_by else ''
        print(f'  Week {week.week}: {week.status}, {week.member_count} scores{by}')
    return False


def cmd_complete_backfill(args, store, config):
    BackfillService(store, get_provider(config), config=config).complete_backfill(args.league, args.by)
    print(f'Backfill completed; {args.league} is active')
    return True


def cmd_week_scores(args, store, config):
    rows = BackfillService(store, get_provider(config), config=config).week_scores(args.league, args.week)
    for row in rows:
        picks = ', '.join(
            f'{slot} {row.player_names.get(slot, "-")} {row.slot_points.get(slot, 0.0):.1f}'
            for slot in ('QB', 'RB', 'WR')
        )
        print(f'  {row.display_name}: {row.total_points:.1f} ({picks})')
    return False


def cmd_sync_schedule(args, store, config):
    created, updated = sync_schedule(store, get_provider(config), config, week=args.week)
    print(f'Games: {created} created, {updated} updated')
    return True


def cmd_sync_players(args, store, config):
    count = sync_players(store, get_provider(config), config)
    print(f'Players synced: {count}')
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Three Man League pick'em engine")
    parser.add_argument(
        "--store", "-s",
        default=str(DEFAULT_STORE),
        help="Path to the JSON store file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-league", help="Create a league with default payouts and weeks")
    p.add_argument("league")
    p.add_argument("--name", default="")
    p.add_argument("--season", type=int, default=None)
    p.add_argument("--member", action="append", default=[], help="PARTICIPANT_ID=Display Name")
    p.set_defaults(func=cmd_init_league)

    p = sub.add_parser("submit", help="Submit picks for a week")
    p.add_argument("league")
    p.add_argument("week", type=int)
    p.add_argument("participant")
    p.add_argument("--qb", type=parse_selection, help="PLAYER_ID:GAME_ID")
    p.add_argument("--rb", type=parse_selection, help="PLAYER_ID:GAME_ID")
    p.add_argument("--wr", type=parse_selection, help="PLAYER_ID:GAME_ID")
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser("lock-sweep", help="Lock slots whose games are about to kick off")
    p.add_argument("--interval", type=int, default=0, help="Repeat every N seconds")
    p.set_defaults(func=cmd_lock_sweep)

    p = sub.add_parser("score-week", help="Score a league week")
    p.add_argument("league")
    p.add_argument("week", type=int)
    p.add_argument("--update-standings", action="store_true", help="Recompute standings after scoring")
    p.set_defaults(func=cmd_score_week)

    p = sub.add_parser("standings", help="Show season standings")
    p.add_argument("league")
    p.add_argument("--recompute", action="store_true")
    p.set_defaults(func=cmd_standings)

    p = sub.add_parser("used-players", help="List players a participant has used")
    p.add_argument("league")
    p.add_argument("participant")
    p.set_defaults(func=cmd_used_players)

    p = sub.add_parser("enable-backfill", help="Open past weeks for backfill")
    p.add_argument("league")
    p.add_argument("from_week", type=int)
    p.add_argument("to_week", type=int)
    p.set_defaults(func=cmd_enable_backfill)

    p = sub.add_parser("backfill-week", help="Write and score a historical week")
    p.add_argument("league")
    p.add_argument("week", type=int)
    p.add_argument("--by", required=True, help="Operator id")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--picks", help="JSON file of member picks")
    source.add_argument("--workbook", help="Excel workbook of member picks")
    p.add_argument("--sheet", default=None, help="Workbook sheet (default: 'Week N')")
    p.set_defaults(func=cmd_backfill_week)

    p = sub.add_parser("backfill-status", help="Show backfill progress")
    p.add_argument("league")
    p.set_defaults(func=cmd_backfill_status)

    p = sub.add_parser("complete-backfill", help="Finish backfill and activate the league")
    p.add_argument("league")
    p.add_argument("--by", required=True, help="Operator id")
    p.set_defaults(func=cmd_complete_backfill)

    p = sub.add_parser("week-scores", help="Review a week's picks and scores")
    p.add_argument("league")
    p.add_argument("week", type=int)
    p.set_defaults(func=cmd_week_scores)

    p = sub.add_parser("sync-schedule", help="Load games from the stats provider")
    p.add_argument("--week", type=int, default=None)
    p.set_defaults(func=cmd_sync_schedule)

    p = sub.add_parser("sync-players", help="Load players from the stats provider")
    p.set_defaults(func=cmd_sync_players)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_to_file=not args.no_log_file,
    )

    config = get_config()
    store = LeagueStore.load(args.store)

    try:
        changed = args.func(args, store, config)
    except ThreeManError as e:
        print(f"❌ {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        changed = True

    if changed:
        store.save()


if __name__ == "__main__":
    main()
