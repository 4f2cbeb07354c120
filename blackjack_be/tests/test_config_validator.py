import pytest

from blackjack_be.config_validator import ConfigValidator, ConfigValidationError, validate_production_config


def make_validator(is_production=False, **environ):
    return ConfigValidator(is_production=is_production, environ=environ)


def test_defaults_validate():
    config = make_validator().validate_all()
    assert config['BLACKJACK_MIN_BET'] == 5
    assert config['BLACKJACK_CHIP_VALUES'] == (5, 50, 100, 500, 1000, 5000, 10000)
    assert config['BLACKJACK_SHOE_DECKS'] == 1
    assert config['BLACKJACK_RESHUFFLE_THRESHOLD'] == 15
    assert config['BLACKJACK_DEALER_HITS_SOFT_17'] is False
    assert config['BLACKJACK_PAYOUT'] == 1.5
    assert config['BLACKJACK_STARTING_BANK'] == 1000
    assert config['PRESENCE_TIMEOUT_SECONDS'] == 30
    assert config['RATELIMIT_DEFAULT_LIMITS'] == '20 per second'
    assert config['CORS_ORIGINS'] == []


def test_min_bet_must_equal_smallest_chip():
    validator = make_validator(BLACKJACK_MIN_BET='10')
    with pytest.raises(ConfigValidationError, match="must equal the smallest chip"):
        validator.validate_all()


def test_chips_must_ascend():
    validator = make_validator(BLACKJACK_CHIP_VALUES='5,100,50')
    with pytest.raises(ConfigValidationError, match="strictly ascending"):
        validator.validate_all()


def test_chips_must_be_integers():
    validator = make_validator(BLACKJACK_CHIP_VALUES='5,ten')
    with pytest.raises(ConfigValidationError, match="comma separated list of integers"):
        validator.validate_all()


def test_chip_must_be_multiple_of_min_bet():
    validator = make_validator(BLACKJACK_CHIP_VALUES='5,12')
    with pytest.raises(ConfigValidationError, match="not a multiple of the minimum bet"):
        validator.validate_all()


@pytest.mark.parametrize("decks", ['0', '9'])
def test_deck_count_bounds(decks):
    validator = make_validator(BLACKJACK_SHOE_DECKS=decks)
    with pytest.raises(ConfigValidationError, match="BLACKJACK_SHOE_DECKS"):
        validator.validate_all()


def test_non_integer_setting_is_reported():
    validator = make_validator(BLACKJACK_SHOE_DECKS='two')
    with pytest.raises(ConfigValidationError, match="must be an integer"):
        validator.validate_all()


def test_negative_delay_rejected():
    validator = make_validator(DEALER_DRAW_DELAY='-1')
    with pytest.raises(ConfigValidationError, match="DEALER_DRAW_DELAY cannot be negative"):
        validator.validate_all()


def test_starting_bank_must_cover_min_bet():
    validator = make_validator(BLACKJACK_CHIP_VALUES='500,1000', BLACKJACK_STARTING_BANK='100',
                               BLACKJACK_DEFAULT_BET='500')
    with pytest.raises(ConfigValidationError, match="must cover the minimum bet"):
        validator.validate_all()


def test_large_reshuffle_threshold_only_warns():
    validator = make_validator(BLACKJACK_RESHUFFLE_THRESHOLD='60')
    with pytest.warns(UserWarning, match="reshuffled before every round"):
        config = validator.validate_all()
    assert config['BLACKJACK_RESHUFFLE_THRESHOLD'] == 60


def test_production_warns_about_memory_storage_and_cors():
    validator = make_validator(is_production=True)
    with pytest.warns(UserWarning):
        validator.validate_all()
    assert any('memory://' in warning for warning in validator.warnings)
    assert any('CORS_ORIGINS' in warning for warning in validator.warnings)


def test_production_rejects_debug():
    validator = make_validator(is_production=True, FLASK_DEBUG='True')
    with pytest.raises(ConfigValidationError, match="DEBUG mode must be disabled"):
        validator.validate_all()


def test_cors_origins_are_split():
    config = make_validator(CORS_ORIGINS='http://a.example, https://b.example').validate_all()
    assert config['CORS_ORIGINS'] == ['http://a.example', 'https://b.example']


def test_production_detected_from_environment():
    assert ConfigValidator(environ={'FLASK_ENV': 'production'}).is_production is True
    assert ConfigValidator(environ={'FLASK_ENV': 'development'}).is_production is False
    assert ConfigValidator(environ={'FLASK_DEBUG': 'true'}).is_production is False


def test_validate_production_config_exits_on_failure(capsys):
    with pytest.raises(SystemExit) as excinfo:
        validate_production_config(environ={'FLASK_ENV': 'development', 'BLACKJACK_SHOE_DECKS': '0'})
    assert excinfo.value.code == 1
    assert "CONFIGURATION VALIDATION FAILED" in capsys.readouterr().err
