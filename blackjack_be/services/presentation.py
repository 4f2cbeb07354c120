"""
Timed pacing for the single-player table.

The round engine yields instantaneous steps (one per dealt card, reveal, dealer
draw). The scheduler walks those steps, tells a listener about each one and
pauses between them so a human can follow the deal. Delays only affect pacing;
the table state is identical with every delay set to zero.
"""
import logging
import time

from ..utils import blackjack_helper

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_DEAL_DELAY = 0.35
DEFAULT_DEALER_REVEAL_DELAY = 0.9
DEFAULT_DEALER_DRAW_DELAY = 1.0


class PresentationScheduler:
    def __init__(self, initial_deal_delay=DEFAULT_INITIAL_DEAL_DELAY,
                 dealer_reveal_delay=DEFAULT_DEALER_REVEAL_DELAY,
                 dealer_draw_delay=DEFAULT_DEALER_DRAW_DELAY,
                 listener=None, sleep=time.sleep):
        self.delays = {
            'player_card': initial_deal_delay,
            'dealer_up_card': initial_deal_delay,
            'dealer_hole_card': initial_deal_delay,
            'reveal': dealer_reveal_delay,
            'draw': dealer_draw_delay,
        }
        self.listener = listener
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, listener=None, sleep=time.sleep):
        return cls(
            initial_deal_delay=config.get('INITIAL_DEAL_DELAY', DEFAULT_INITIAL_DEAL_DELAY),
            dealer_reveal_delay=config.get('DEALER_REVEAL_DELAY', DEFAULT_DEALER_REVEAL_DELAY),
            dealer_draw_delay=config.get('DEALER_DRAW_DELAY', DEFAULT_DEALER_DRAW_DELAY),
            listener=listener,
            sleep=sleep,
        )

    def run(self, steps, table):
        """Consumes every step of `steps`; returns the last step name."""
        last_step = None
        for step, payload in steps:
            last_step = step
            if self.listener is not None:
                self.listener(step, payload, table)
            delay = self.delays.get(step, 0)
            if delay > 0:
                self._sleep(delay)
        return last_step

    def deal(self, table):
        """Starts a round and paces the initial deal; naturals settle within the deal."""
        self.run(blackjack_helper.start_round_steps(table), table)
        return table

    def act(self, table, action):
        """Applies a player action; once the player's turn ends the dealer run always completes."""
        phase = blackjack_helper.apply_player_action(table, action)
        if phase == blackjack_helper.PHASE_DEALER_TURN:
            logger.debug("Player turn finished, running dealer")
            self.run(blackjack_helper.dealer_turn_steps(table), table)
        elif self.listener is not None:
            self.listener(action, None, table)
        return table
