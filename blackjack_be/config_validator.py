"""
Configuration validation and startup checks.

This module implements fail-fast validation of the table rules and server
settings so a misconfigured table (for example a minimum bet that no chip can
express) never starts taking bets.
"""

import os
import sys
import warnings
from typing import List, Optional, Tuple


TRUE_VALUES = ('true', '1', 't')

DEFAULT_CHIP_VALUES = '5,50,100,500,1000,5000,10000'
MAX_SHOE_DECKS = 8


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


class ConfigValidator:
    """Validates table rules and server settings read from the environment."""

    def __init__(self, is_production: bool = None, environ=None):
        """
        Initialize the configuration validator.

        Args:
            is_production: If None, auto-detect based on FLASK_ENV and FLASK_DEBUG settings
            environ: Mapping to read settings from, defaults to os.environ
        """
        self.environ = os.environ if environ is None else environ
        if is_production is None:
            flask_env = self.environ.get('FLASK_ENV', '').lower()
            flask_debug = self.environ.get('FLASK_DEBUG', 'False').lower()
            is_production = (
                flask_env == 'production' or
                (flask_env != 'development' and flask_debug not in TRUE_VALUES)
            )

        self.is_production = is_production
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def _get_int(self, var_name: str, default: int) -> int:
        raw = self.environ.get(var_name)
        if raw is None or raw == '':
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigValidationError(f"{var_name} must be an integer, got '{raw}'")

    def _get_float(self, var_name: str, default: float) -> float:
        raw = self.environ.get(var_name)
        if raw is None or raw == '':
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigValidationError(f"{var_name} must be a number, got '{raw}'")

    def _get_bool(self, var_name: str, default: str = 'False') -> bool:
        return self.environ.get(var_name, default).lower() in TRUE_VALUES

    def validate_chip_config(self) -> Tuple[int, Tuple[int, ...]]:
        """Validate the chip denominations and the minimum bet they imply."""
        raw_chips = self.environ.get('BLACKJACK_CHIP_VALUES', DEFAULT_CHIP_VALUES)
        try:
            chip_values = tuple(int(value.strip()) for value in raw_chips.split(',') if value.strip())
        except ValueError:
            raise ConfigValidationError(f"BLACKJACK_CHIP_VALUES must be a comma separated list of integers, got '{raw_chips}'")

        if not chip_values:
            self.errors.append("CRITICAL: BLACKJACK_CHIP_VALUES must list at least one chip denomination")
            return 0, chip_values
        if any(value <= 0 for value in chip_values):
            self.errors.append("CRITICAL: BLACKJACK_CHIP_VALUES must only contain positive denominations")
        if any(later <= earlier for earlier, later in zip(chip_values, chip_values[1:])):
            self.errors.append("CRITICAL: BLACKJACK_CHIP_VALUES must be strictly ascending")

        min_bet = self._get_int('BLACKJACK_MIN_BET', chip_values[0])
        if min_bet != chip_values[0]:
            self.errors.append(
                f"CRITICAL: BLACKJACK_MIN_BET ({min_bet}) must equal the smallest chip ({chip_values[0]})"
            )
        for value in chip_values:
            if min_bet > 0 and value % min_bet != 0:
                self.errors.append(
                    f"CRITICAL: Chip {value} is not a multiple of the minimum bet {min_bet}"
                )
        return min_bet, chip_values

    def validate_table_config(self, min_bet: int) -> dict:
        """Validate shoe, dealer and bankroll rules."""
        rules = {
            'BLACKJACK_SHOE_DECKS': self._get_int('BLACKJACK_SHOE_DECKS', 1),
            'BLACKJACK_RESHUFFLE_THRESHOLD': self._get_int('BLACKJACK_RESHUFFLE_THRESHOLD', 15),
            'BLACKJACK_DEALER_HITS_SOFT_17': self._get_bool('BLACKJACK_DEALER_HITS_SOFT_17'),
            'BLACKJACK_PAYOUT': self._get_float('BLACKJACK_PAYOUT', 1.5),
            'BLACKJACK_STARTING_BANK': self._get_int('BLACKJACK_STARTING_BANK', 1000),
            'BLACKJACK_DEFAULT_BET': self._get_int('BLACKJACK_DEFAULT_BET', 100),
        }

        decks = rules['BLACKJACK_SHOE_DECKS']
        if not 1 <= decks <= MAX_SHOE_DECKS:
            self.errors.append(f"CRITICAL: BLACKJACK_SHOE_DECKS must be between 1 and {MAX_SHOE_DECKS}, got {decks}")

        threshold = rules['BLACKJACK_RESHUFFLE_THRESHOLD']
        if threshold < 1:
            self.errors.append("CRITICAL: BLACKJACK_RESHUFFLE_THRESHOLD must be at least 1")
        elif threshold >= 52 * decks:
            self.warnings.append(
                f"BLACKJACK_RESHUFFLE_THRESHOLD ({threshold}) is not below the shoe size; "
                "the shoe will be reshuffled before every round"
            )

        if rules['BLACKJACK_PAYOUT'] <= 0:
            self.errors.append("CRITICAL: BLACKJACK_PAYOUT must be positive")

        starting_bank = rules['BLACKJACK_STARTING_BANK']
        if starting_bank < min_bet:
            self.errors.append(
                f"CRITICAL: BLACKJACK_STARTING_BANK ({starting_bank}) must cover the minimum bet ({min_bet})"
            )

        default_bet = rules['BLACKJACK_DEFAULT_BET']
        if min_bet > 0 and (default_bet < min_bet or default_bet % min_bet != 0):
            self.errors.append(
                f"CRITICAL: BLACKJACK_DEFAULT_BET ({default_bet}) must be a positive multiple of the minimum bet ({min_bet})"
            )
        return rules

    def validate_timing_config(self) -> dict:
        """Validate presence timeout and presentation delays."""
        timing = {
            'PRESENCE_TIMEOUT_SECONDS': self._get_float('PRESENCE_TIMEOUT_SECONDS', 30),
            'INITIAL_DEAL_DELAY': self._get_float('INITIAL_DEAL_DELAY', 0.35),
            'DEALER_REVEAL_DELAY': self._get_float('DEALER_REVEAL_DELAY', 0.9),
            'DEALER_DRAW_DELAY': self._get_float('DEALER_DRAW_DELAY', 1.0),
        }
        if timing['PRESENCE_TIMEOUT_SECONDS'] <= 0:
            self.errors.append("CRITICAL: PRESENCE_TIMEOUT_SECONDS must be positive")
        for key in ('INITIAL_DEAL_DELAY', 'DEALER_REVEAL_DELAY', 'DEALER_DRAW_DELAY'):
            if timing[key] < 0:
                self.errors.append(f"CRITICAL: {key} cannot be negative")
        return timing

    def validate_rate_limiting_config(self) -> Tuple[str, str]:
        """Validate rate limiting configuration."""
        rate_limit_uri = self.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
        default_limits = self.environ.get('RATELIMIT_DEFAULT_LIMITS', '20 per second')

        if rate_limit_uri == 'memory://' and self.is_production:
            self.warnings.append(
                "Rate limiting uses memory:// storage in production. "
                "This is only suitable for a single server process."
            )
        return rate_limit_uri, default_limits

    def validate_cors_config(self) -> List[str]:
        """Validate CORS configuration."""
        cors_origins = self.environ.get('CORS_ORIGINS', '')

        if not cors_origins:
            if self.is_production:
                self.warnings.append(
                    "CORS_ORIGINS is not set - browser clients on other origins will be rejected"
                )
            return []

        origins = [origin.strip() for origin in cors_origins.split(',') if origin.strip()]
        for origin in origins:
            if not origin.startswith(('http://', 'https://')):
                self.warnings.append(f"CORS origin '{origin}' should include protocol (http:// or https://)")
        return origins

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If any critical setting is invalid
        """
        config = {}

        try:
            config['BLACKJACK_MIN_BET'], config['BLACKJACK_CHIP_VALUES'] = self.validate_chip_config()
            config.update(self.validate_table_config(config['BLACKJACK_MIN_BET']))
            config.update(self.validate_timing_config())
            config['RATELIMIT_STORAGE_URI'], config['RATELIMIT_DEFAULT_LIMITS'] = self.validate_rate_limiting_config()
            config['CORS_ORIGINS'] = self.validate_cors_config()

            config['DEBUG'] = self._get_bool('FLASK_DEBUG')
            config['FORCE_HTTPS'] = self._get_bool('FORCE_HTTPS')

            if self.is_production and config['DEBUG']:
                self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            for warning in self.warnings:
                warnings.warn(warning, UserWarning)

            return config

        except Exception as e:
            if isinstance(e, ConfigValidationError):
                raise
            else:
                raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_production_config(environ=None) -> dict:
    """
    Validate configuration with fail-fast behavior.

    Returns:
        Dictionary of validated configuration values

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator(environ=environ)
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nHow to fix:", file=sys.stderr)
        print("1. Check the BLACKJACK_* table rule variables", file=sys.stderr)
        print("2. Keep BLACKJACK_MIN_BET equal to the smallest chip", file=sys.stderr)
        print("\nServer startup ABORTED\n", file=sys.stderr)
        sys.exit(1)
