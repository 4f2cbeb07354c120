from marshmallow import Schema, fields, pre_load, EXCLUDE
from marshmallow.validate import OneOf, Range, Length
import re
import html

from .utils.blackjack_helper import HAND_ACTIONS # Relative import

def sanitize_string_field(value):
    """Sanitize string inputs to prevent XSS"""
    if isinstance(value, str):
        # HTML escape
        value = html.escape(value)
        # Remove potential script tags
        value = re.sub(r'<script\b[^<]*(?:(?!<\/script>)<[^<]*)*<\/script>', '', value, flags=re.IGNORECASE)
    return value

# --- Custom Fields ---
class SanitizedString(fields.String):
    """String field with automatic sanitization"""
    def _deserialize(self, value, attr, data, **kwargs):
        value = super()._deserialize(value, attr, data, **kwargs)
        return sanitize_string_field(value) if value else value


# --- Lobby Request Schemas ---
class JoinLobbySchema(Schema):
    name = SanitizedString(load_default='', validate=Length(max=200))
    device_id = fields.Str(required=True, data_key='deviceId', validate=Length(min=1, max=128))

    @pre_load
    def strip_name(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('name'), str):
            data = dict(data, name=data['name'].strip())
        return data

class PlayerAuthSchema(Schema):
    """Every game request carries the player id and session token issued at join."""
    class Meta:
        unknown = EXCLUDE

    player_id = fields.Str(required=True, data_key='playerId', validate=Length(min=1, max=64))
    token = fields.Str(required=True, validate=Length(min=1, max=128))

class BetChipSchema(PlayerAuthSchema):
    chip = fields.Int(required=True, strict=True, validate=Range(min=1))

class GameActionSchema(PlayerAuthSchema):
    action = fields.Str(required=True, validate=OneOf(HAND_ACTIONS))
    hand_index = fields.Int(data_key='handIndex', load_default=None, allow_none=True, strict=True,
                            validate=Range(min=0))


# --- Response Schemas ---
class CardSchema(Schema):
    id = fields.Str()
    rank = fields.Str()
    suit = fields.Str()

class DealerCardSchema(Schema):
    """Either {"state": "visible", "card": {...}} or {"state": "concealed"}."""
    state = fields.Str(validate=OneOf(['visible', 'concealed']))
    card = fields.Nested(CardSchema)

class HandSchema(Schema):
    cards = fields.List(fields.Nested(CardSchema))
    bet = fields.Int()
    total = fields.Int()
    is_soft = fields.Bool(data_key='isSoft')
    is_done = fields.Bool(data_key='isDone')
    is_busted = fields.Bool(data_key='isBusted')
    is_standing = fields.Bool(data_key='isStanding')
    is_doubled = fields.Bool(data_key='isDoubled')
    is_blackjack = fields.Bool(data_key='isBlackjack')
    is_split_aces = fields.Bool(data_key='isSplitAces')
    result = fields.Str(allow_none=True)
    result_reason = fields.Str(data_key='resultReason')

class StatsSchema(Schema):
    rounds = fields.Int()
    wins = fields.Int()
    losses = fields.Int()
    pushes = fields.Int()

class TablePlayerSchema(Schema):
    id = fields.Str()
    name = fields.Str()
    bank = fields.Int()
    bet_stack = fields.List(fields.Int(), data_key='betStack')
    bet = fields.Int()
    hands = fields.List(fields.Nested(HandSchema))
    current_hand_index = fields.Int(data_key='currentHandIndex')
    in_round = fields.Bool(data_key='inRound')
    ready = fields.Bool()
    result = fields.Str(allow_none=True)
    result_reason = fields.Str(data_key='resultReason')
    stats = fields.Nested(StatsSchema)

class TableStateSchema(Schema):
    """
    Shared table snapshot sent to every polling client.
    The dealer hole card is dumped as a concealed entry until the dealer reveals it.
    """
    lobby = fields.Str()
    version = fields.Int()
    phase = fields.Str()
    message = fields.Str()
    dealer_cards = fields.List(fields.Nested(DealerCardSchema), data_key='dealerCards')
    dealer_revealed = fields.Bool(data_key='dealerRevealed')
    dealer_total = fields.Int(data_key='dealerTotal')
    current_turn_player_id = fields.Str(allow_none=True, data_key='currentTurnPlayerId')
    you = fields.Str(allow_none=True)
    players = fields.List(fields.Nested(TablePlayerSchema))

class LobbyPlayerSchema(Schema):
    id = fields.Str()
    name = fields.Str()
    bank = fields.Int()
    joined_at = fields.Int(data_key='joinedAt')
    ready = fields.Bool()

class SeatSchema(Schema):
    id = fields.Str()
    name = fields.Str()
    bank = fields.Int()
