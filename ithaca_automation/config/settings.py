"""
Automation settings

Immutable settings objects built from the user's config file merged over the
built-in defaults. Components only ever read these objects.
"""

from dataclasses import asdict, dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Tuple

from ..core.types import ConfigError


@dataclass(frozen=True)
class BridgeDirectionConfig:
    """Settings of one bridge direction

    ``max_wait_time`` is in milliseconds, matching the config file format.
    """
    min_amount: float = 0.0001
    max_amount: float = 0.001
    wait_for_confirmation: bool = False
    max_wait_time: int = 300000

    @property
    def max_wait_seconds(self) -> float:
        return self.max_wait_time / 1000


@dataclass(frozen=True)
class BridgeSettings:
    """Bridge section of the configuration"""
    enable_sepolia_to_ithaca: bool = True
    enable_ithaca_to_sepolia: bool = True
    sepolia_to_ithaca: BridgeDirectionConfig = field(
        default_factory=lambda: BridgeDirectionConfig(wait_for_confirmation=True)
    )
    ithaca_to_sepolia: BridgeDirectionConfig = field(default_factory=BridgeDirectionConfig)
    gas_price_multiplier: float = 1.1
    max_retries: int = 3

    def direction(self, name: str) -> BridgeDirectionConfig:
        return getattr(self, name)

    def is_enabled(self, name: str) -> bool:
        return bool(getattr(self, f"enable_{name}"))


@dataclass(frozen=True)
class AutomationConfig:
    """Top-level automation settings"""
    enable_transfer: bool = True
    gas_price_multiplier: float = 1.1
    max_retries: int = 5
    base_wait_time: float = 10
    transfer_amount_percentage: int = 90
    bridge: BridgeSettings = field(default_factory=BridgeSettings)

    request_timeout: float = 30.0
    receipt_timeout: float = 180.0
    confirmation_poll_interval: float = 30.0
    wallet_delay: Tuple[int, int] = (5, 15)
    cycle_cooldown_hours: float = 25

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'AutomationConfig':
        """Merge ``raw`` over the defaults and validate the result

        Unknown keys are ignored. Nested bridge direction sections are merged
        key by key so a partial section keeps the remaining defaults.

        Raises:
            ConfigError: if a value has the wrong type or is out of range
        """
        top = _whole_numbers(_pick(cls, raw, exclude=('bridge',)), ('max_retries', 'transfer_amount_percentage'))
        if 'wallet_delay' in top:
            top['wallet_delay'] = _as_range(top['wallet_delay'])

        bridge_raw = raw.get('bridge') or {}
        if not isinstance(bridge_raw, Mapping):
            raise ConfigError("'bridge' must be a mapping")

        default_bridge = BridgeSettings()
        bridge_kwargs = _whole_numbers(
            _pick(BridgeSettings, bridge_raw, exclude=('sepolia_to_ithaca', 'ithaca_to_sepolia')),
            ('max_retries',),
            prefix="bridge.",
        )
        for name in ('sepolia_to_ithaca', 'ithaca_to_sepolia'):
            section = bridge_raw.get(name) or {}
            if not isinstance(section, Mapping):
                raise ConfigError(f"'bridge.{name}' must be a mapping")
            bridge_kwargs[name] = replace(
                default_bridge.direction(name),
                **_whole_numbers(_pick(BridgeDirectionConfig, section), ('max_wait_time',), prefix=f"bridge.{name}."),
            )

        try:
            config = cls(bridge=BridgeSettings(**bridge_kwargs), **top)
        except TypeError as e:
            raise ConfigError(str(e)) from e
        config.validate()
        return config

    def validate(self) -> None:
        """Check ranges; raises ConfigError on the first invalid value"""
        if _to_decimal(self.gas_price_multiplier, 'gas_price_multiplier') <= 0:
            raise ConfigError("gas_price_multiplier must be positive")
        if _to_decimal(self.bridge.gas_price_multiplier, 'bridge.gas_price_multiplier') <= 0:
            raise ConfigError("bridge.gas_price_multiplier must be positive")
        if _to_int(self.max_retries, 'max_retries') < 1 or _to_int(self.bridge.max_retries, 'bridge.max_retries') < 1:
            raise ConfigError("max_retries must be at least 1")
        if _to_decimal(self.base_wait_time, 'base_wait_time') < 0:
            raise ConfigError("base_wait_time must not be negative")
        if not 0 <= _to_int(self.transfer_amount_percentage, 'transfer_amount_percentage') <= 100:
            raise ConfigError("transfer_amount_percentage must be between 0 and 100")
        low, high = self.wallet_delay
        if low < 0 or high < low:
            raise ConfigError("wallet_delay must be an increasing pair of non-negative seconds")
        for name in ('sepolia_to_ithaca', 'ithaca_to_sepolia'):
            direction = self.bridge.direction(name)
            min_amount = _to_decimal(direction.min_amount, f'{name}.min_amount')
            max_amount = _to_decimal(direction.max_amount, f'{name}.max_amount')
            if min_amount < 0 or max_amount < min_amount:
                raise ConfigError(f"{name}: need 0 <= min_amount <= max_amount")
            if _to_int(direction.max_wait_time, f'{name}.max_wait_time') < 0:
                raise ConfigError(f"{name}.max_wait_time must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _pick(cls, raw: Mapping[str, Any], exclude: Tuple[str, ...] = ()) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)} - set(exclude)
    return {key: value for key, value in raw.items() if key in names}


def _as_range(value: Any) -> Tuple[int, int]:
    try:
        low, high = value
        return int(low), int(high)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"expected a [min, max] pair, got {value!r}") from e


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e
    if not number.is_finite():
        raise ConfigError(f"{name} must be a number, got {value!r}")
    return number


def _to_int(value: Any, name: str) -> int:
    number = _to_decimal(value, name)
    if number != number.to_integral_value():
        raise ConfigError(f"{name} must be a whole number, got {value!r}")
    return int(number)


def _whole_numbers(values: Dict[str, Any], names: Tuple[str, ...], prefix: str = "") -> Dict[str, Any]:
    """Coerce the integer-valued ``names`` in ``values``, e.g. 90.0 -> 90"""
    for name in names:
        if name in values:
            values[name] = _to_int(values[name], prefix + name)
    return values


DEFAULT_CONFIG = AutomationConfig()
