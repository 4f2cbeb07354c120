"""
Table and server configuration with fail-fast validation.

Values come from the environment (a local .env file is loaded first) and are
validated at import time; an invalid table never starts.
"""
from dotenv import load_dotenv

from .config_validator import validate_production_config

# Load environment variables from .env file
load_dotenv()

class Config:
    """Server configuration built from validated environment values."""

    _validated_config = validate_production_config()

    # Table Rules
    BLACKJACK_MIN_BET = _validated_config['BLACKJACK_MIN_BET']
    BLACKJACK_CHIP_VALUES = _validated_config['BLACKJACK_CHIP_VALUES']
    BLACKJACK_SHOE_DECKS = _validated_config['BLACKJACK_SHOE_DECKS']
    BLACKJACK_RESHUFFLE_THRESHOLD = _validated_config['BLACKJACK_RESHUFFLE_THRESHOLD']
    BLACKJACK_DEALER_HITS_SOFT_17 = _validated_config['BLACKJACK_DEALER_HITS_SOFT_17']
    BLACKJACK_PAYOUT = _validated_config['BLACKJACK_PAYOUT']
    BLACKJACK_STARTING_BANK = _validated_config['BLACKJACK_STARTING_BANK']
    BLACKJACK_DEFAULT_BET = _validated_config['BLACKJACK_DEFAULT_BET']

    # Lobby
    LOBBY_NAME = 'main'
    PRESENCE_TIMEOUT_SECONDS = _validated_config['PRESENCE_TIMEOUT_SECONDS']

    # Presentation pacing (seconds) for the console table
    INITIAL_DEAL_DELAY = _validated_config['INITIAL_DEAL_DELAY']
    DEALER_REVEAL_DELAY = _validated_config['DEALER_REVEAL_DELAY']
    DEALER_DRAW_DELAY = _validated_config['DEALER_DRAW_DELAY']

    # Rate Limiter - clients poll the state endpoint several times a second
    RATELIMIT_STORAGE_URI = _validated_config['RATELIMIT_STORAGE_URI']
    RATELIMIT_DEFAULT_LIMITS = _validated_config['RATELIMIT_DEFAULT_LIMITS']

    # CORS Configuration
    CORS_ORIGINS_LIST = _validated_config['CORS_ORIGINS']

    # Flask Debug Mode
    DEBUG = _validated_config['DEBUG']
    FORCE_HTTPS = _validated_config['FORCE_HTTPS']


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    # Disable rate limiting for tests
    RATELIMIT_ENABLED = False
    RATELIMIT_DEFAULT_LIMITS_ENABLED = False
    # Rounds resolve instantly under test
    INITIAL_DEAL_DELAY = 0
    DEALER_REVEAL_DELAY = 0
    DEALER_DRAW_DELAY = 0
    CORS_ORIGINS_LIST = []
    FORCE_HTTPS = False
