#!/usr/bin/env python3
"""
Blackjack CLI

Usage:
    blackjack serve --port 5000
    blackjack play
    blackjack poll --server http://localhost:5000 --name Alice
"""

import sys
import uuid

import click

from .config import Config
from .exceptions import AppException
from .client import LobbyClient, TransportFailure, DEFAULT_SERVER, DEFAULT_POLL_INTERVAL
from .services.presentation import PresentationScheduler
from .utils import blackjack_helper
from .utils.hand_evaluator import hand_totals

SUIT_SYMBOLS = {'spades': '♠', 'hearts': '♥', 'diamonds': '♦', 'clubs': '♣'}


def config_mapping(config_class):
    """Upper-case settings of a config class as a plain dict."""
    return {key: getattr(config_class, key) for key in dir(config_class) if key.isupper()}

def format_card(card):
    if card is None:
        return '??'
    return f"{card['rank']}{SUIT_SYMBOLS.get(card['suit'], card['suit'])}"

def format_hand(cards):
    totals = hand_totals(cards)
    soft = ' soft' if totals['is_soft'] else ''
    return f"{' '.join(format_card(card) for card in cards)} ({totals['best']}{soft})"

@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, verbose):
    """Blackjack - lobby server, console table and polling client."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

@cli.command()
@click.option('--host', default='0.0.0.0', help='Interface to bind')
@click.option('--port', default=5000, type=int, help='Port to listen on')
def serve(host, port):
    """Run the lobby server hosting the shared table."""
    from .app import create_app

    app = create_app()
    click.echo(f"🃏 Lobby '{app.table_coordinator.lobby_name}' listening on {host}:{port}")
    app.run(host=host, port=port, debug=app.debug, threaded=True)

# --- Console Table ---

def _echo_step(step, payload, table):
    if step == 'player_card':
        click.echo(f"  You draw {format_card(payload)}")
    elif step == 'dealer_up_card':
        click.echo(f"  Dealer shows {format_card(payload)}")
    elif step == 'dealer_hole_card':
        click.echo("  Dealer takes the hole card")
    elif step == 'reveal':
        click.echo(f"  Dealer reveals {format_card(table['dealer_cards'][1])}")
    elif step == 'draw':
        click.echo(f"  Dealer draws {format_card(payload)}")

def _echo_table(table):
    click.echo("=" * 40)
    dealer_cards = table['dealer_cards']
    if dealer_cards:
        shown = dealer_cards if blackjack_helper.dealer_visible(table) else dealer_cards[:1] + [None]
        click.echo(f"Dealer: {' '.join(format_card(card) for card in shown)} "
                   f"({blackjack_helper.dealer_total_text(table)})")
    for index, hand in enumerate(table['hands']):
        marker = '>' if table['phase'] == blackjack_helper.PHASE_PLAYER_TURN and index == table['current_hand_index'] else ' '
        result = f" [{hand['result']}: {hand['result_reason']}]" if hand['result'] else ''
        click.echo(f"{marker} Hand {index + 1}: {format_hand(hand['cards'])} bet {hand['bet']}{result}")
    click.echo(f"💰 Bank: {table['bankroll']}  Bet: {blackjack_helper.table_bet(table)}  "
               f"Chips: {table['chip_stack']}")
    stats = table['stats']
    click.echo(f"📊 Rounds {stats['rounds']}  W {stats['wins']}  L {stats['losses']}  P {stats['pushes']}")
    click.echo(table['message'])

def _betting_turn(table, scheduler):
    chips = ', '.join(str(chip) for chip in blackjack_helper.available_chips(table))
    command = click.prompt(f"Chip ({chips}), undo, allin, reset, deal or quit", default='deal').strip().lower()
    if command == 'quit':
        return False
    if command == 'deal':
        scheduler.deal(table)
    elif command == 'undo':
        blackjack_helper.remove_bet_chip(table)
    elif command == 'allin':
        blackjack_helper.all_in(table)
    elif command == 'reset':
        blackjack_helper.reset_bankroll(table)
    elif command.isdigit():
        blackjack_helper.place_bet_chip(table, int(command))
    else:
        click.echo(f"❌ Unknown command '{command}'")
    return True

def _player_turn(table, scheduler):
    options = blackjack_helper.available_actions(table)
    choices = [action for action in blackjack_helper.HAND_ACTIONS if options.get(f"can_{action}")]
    action = click.prompt('Action', type=click.Choice(choices), default='stand')
    scheduler.act(table, action)
    return True

@cli.command()
@click.option('--fast', is_flag=True, help='Skip the dealing pauses')
def play(fast):
    """Play a single-player table in the terminal."""
    config = config_mapping(Config)
    if fast:
        config.update(INITIAL_DEAL_DELAY=0, DEALER_REVEAL_DELAY=0, DEALER_DRAW_DELAY=0)

    table = blackjack_helper.create_table(blackjack_helper.table_rules_from_config(config))
    scheduler = PresentationScheduler.from_config(config, listener=_echo_step)
    click.echo("\n🃏 Blackjack")

    playing = True
    while playing:
        _echo_table(table)
        try:
            if table['phase'] == blackjack_helper.PHASE_BETTING:
                playing = _betting_turn(table, scheduler)
            elif table['phase'] == blackjack_helper.PHASE_PLAYER_TURN:
                playing = _player_turn(table, scheduler)
            elif table['phase'] == blackjack_helper.PHASE_ROUND_OVER:
                if table['round_is_gold']:
                    click.echo("✨ Double natural!")
                click.echo(f"🏁 {table['round_summary']}: {table['round_details']}")
                playing = click.confirm("Next round?", default=True)
                if playing:
                    blackjack_helper.next_round(table)
        except AppException as e:
            click.echo(f"❌ {e.status_message}", err=True)

    click.echo(f"Final bank: {table['bankroll']}")

# --- Polling Client ---

def _echo_snapshot(state):
    you = state['you']
    turn = state['currentTurnPlayerId']
    click.echo(f"[v{state['version']}] {state['phase']}: {state['message']}")
    dealer = ' '.join(
        format_card(entry['card']) if entry['state'] == 'visible' else '??'
        for entry in state['dealerCards']
    )
    if dealer:
        click.echo(f"  Dealer: {dealer} ({state['dealerTotal']})")
    for player in state['players']:
        flags = ''.join([
            '*' if player['id'] == turn else ' ',
            '>' if player['id'] == you else ' ',
        ])
        hands = ' | '.join(format_hand(hand['cards']) for hand in player['hands'])
        ready = ' ready' if player['ready'] else ''
        result = f" {player['result']} ({player['resultReason']})" if player['result'] else ''
        click.echo(f"{flags} {player['name']}: bank {player['bank']} bet {player['bet']}{ready} {hands}{result}")

@cli.command()
@click.option('--server', default=DEFAULT_SERVER, help='Lobby server URL')
@click.option('--name', default='', help='Display name at the table')
@click.option('--device-id', default=None, help='Stable device id (random if omitted)')
@click.option('--interval', default=DEFAULT_POLL_INTERVAL, type=float, help='Seconds between polls')
@click.option('--max-polls', default=None, type=int, help='Stop after this many polls')
def poll(server, name, device_id, interval, max_polls):
    """Join the lobby and follow the shared table."""
    client = LobbyClient(server)
    try:
        joined = client.join(name, device_id or uuid.uuid4().hex)
    except TransportFailure as e:
        click.echo(f"❌ Could not join: {e}", err=True)
        sys.exit(1)

    click.echo(f"🪑 Seated as {joined['player']['name']} ({joined['player']['id']}) in lobby '{joined['lobby']}'")
    try:
        client.poll(
            _echo_snapshot,
            interval=interval,
            max_polls=max_polls,
            on_error=lambda e: click.echo(f"⚠️  {e}", err=True),
        )
    except KeyboardInterrupt:
        click.echo("Leaving the table...")
    finally:
        try:
            client.leave()
        except TransportFailure as e:
            click.echo(f"⚠️  Could not leave cleanly: {e}", err=True)

if __name__ == '__main__':
    cli()
