import pytest

from ithaca_automation.config.settings import DEFAULT_CONFIG, AutomationConfig
from ithaca_automation.core.types import ConfigError


def test_defaults():
    config = DEFAULT_CONFIG
    assert config.enable_transfer is True
    assert config.gas_price_multiplier == 1.1
    assert config.max_retries == 5
    assert config.base_wait_time == 10
    assert config.transfer_amount_percentage == 90
    assert config.wallet_delay == (5, 15)
    assert config.cycle_cooldown_hours == 25
    assert config.request_timeout == 30

    bridge = config.bridge
    assert bridge.enable_sepolia_to_ithaca and bridge.enable_ithaca_to_sepolia
    assert bridge.gas_price_multiplier == 1.1
    assert bridge.max_retries == 3
    assert bridge.sepolia_to_ithaca.wait_for_confirmation is True
    assert bridge.sepolia_to_ithaca.max_wait_time == 300000
    assert bridge.ithaca_to_sepolia.wait_for_confirmation is False
    assert bridge.ithaca_to_sepolia.min_amount == 0.0001
    assert bridge.ithaca_to_sepolia.max_amount == 0.001


def test_partial_sections_keep_defaults():
    config = AutomationConfig.from_dict({
        'max_retries': 2,
        'unknown_key': 'ignored',
        'bridge': {
            'enable_ithaca_to_sepolia': False,
            'sepolia_to_ithaca': {'max_amount': 0.002},
        },
    })

    assert config.max_retries == 2
    assert config.gas_price_multiplier == 1.1
    assert config.bridge.enable_ithaca_to_sepolia is False
    assert config.bridge.sepolia_to_ithaca.max_amount == 0.002
    assert config.bridge.sepolia_to_ithaca.min_amount == 0.0001
    assert config.bridge.sepolia_to_ithaca.wait_for_confirmation is True
    assert config.bridge.max_retries == 3


def test_direction_helpers():
    config = AutomationConfig.from_dict({'bridge': {'sepolia_to_ithaca': {'max_wait_time': 60000}}})
    assert config.bridge.direction('sepolia_to_ithaca').max_wait_seconds == 60
    assert config.bridge.is_enabled('ithaca_to_sepolia')


def test_wallet_delay_from_list():
    assert AutomationConfig.from_dict({'wallet_delay': [1, 2]}).wallet_delay == (1, 2)


def test_config_is_immutable():
    with pytest.raises(AttributeError):
        DEFAULT_CONFIG.max_retries = 1


@pytest.mark.parametrize("raw", [
    {'gas_price_multiplier': 0},
    {'gas_price_multiplier': 'fast'},
    {'max_retries': 0},
    {'base_wait_time': -1},
    {'transfer_amount_percentage': 101},
    {'transfer_amount_percentage': -5},
    {'wallet_delay': [10, 5]},
    {'wallet_delay': 'soon'},
    {'bridge': 'yes'},
    {'bridge': {'max_retries': 0}},
    {'bridge': {'gas_price_multiplier': -1}},
    {'bridge': {'sepolia_to_ithaca': {'min_amount': 0.01, 'max_amount': 0.001}}},
    {'bridge': {'ithaca_to_sepolia': {'min_amount': -0.1}}},
    {'bridge': {'ithaca_to_sepolia': {'max_wait_time': -1}}},
    {'bridge': {'ithaca_to_sepolia': 'fast'}},
    {'max_retries': 'three'},
    {'base_wait_time': 'soon'},
    {'transfer_amount_percentage': 'most'},
    {'transfer_amount_percentage': 90.5},
    {'gas_price_multiplier': 'nan'},
    {'bridge': {'max_retries': 1.5}},
    {'bridge': {'sepolia_to_ithaca': {'max_wait_time': 'long'}}},
])
def test_invalid_values_raise(raw):
    with pytest.raises(ConfigError):
        AutomationConfig.from_dict(raw)


def test_to_dict_round_trips_through_from_dict():
    config = AutomationConfig.from_dict({'transfer_amount_percentage': 50})
    assert AutomationConfig.from_dict(config.to_dict()) == config


def test_whole_number_floats_are_coerced_to_int():
    config = AutomationConfig.from_dict({
        'transfer_amount_percentage': 90.0,
        'max_retries': 3.0,
        'bridge': {'ithaca_to_sepolia': {'max_wait_time': 60000.0}},
    })

    assert config.transfer_amount_percentage == 90
    assert isinstance(config.transfer_amount_percentage, int)
    assert isinstance(config.max_retries, int)
    assert isinstance(config.bridge.ithaca_to_sepolia.max_wait_time, int)
