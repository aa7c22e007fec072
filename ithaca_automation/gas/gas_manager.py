from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, Optional, Union

import structlog

from ..core.chain_connector import ChainClient

logger = structlog.get_logger(__name__)

INTRINSIC_TRANSFER_GAS = 21000

# Estimates are raised by half before use
GAS_LIMIT_BUFFER_NUM = 3
GAS_LIMIT_BUFFER_DEN = 2


class GasManager:
    """Legacy gas pricing and gas limits for one chain"""

    def __init__(self, client: ChainClient, gas_price_multiplier: Union[float, str, Decimal] = 1.1):
        self.client = client
        self.gas_price_multiplier = gas_price_multiplier

    @staticmethod
    def apply_multiplier(gas_price: int, multiplier: Union[float, str, Decimal]) -> int:
        """Scale ``gas_price`` by ``multiplier`` truncated to two decimals

        Integer arithmetic only: ``price * floor(m * 100) // 100``.
        """
        hundredths = int((Decimal(str(multiplier)) * 100).to_integral_value(rounding=ROUND_FLOOR))
        return gas_price * hundredths // 100

    @staticmethod
    def gas_limit_with_margin(estimate: int) -> int:
        return estimate * GAS_LIMIT_BUFFER_NUM // GAS_LIMIT_BUFFER_DEN

    async def adjusted_gas_price(self) -> int:
        """Current network gas price with the configured multiplier applied"""
        network_price = await self.client.get_gas_price()
        gas_price = self.apply_multiplier(network_price, self.gas_price_multiplier)
        logger.debug("Gas price", chain=self.client.spec.name, network=network_price, adjusted=gas_price)
        return gas_price

    async def gas_limit(self, tx: Dict[str, Any], data: Optional[str]) -> int:
        """Gas limit for ``tx``: fixed for plain transfers, estimate plus margin otherwise"""
        if not data or data == '0x':
            return INTRINSIC_TRANSFER_GAS
        estimate = await self.client.estimate_gas(tx)
        return self.gas_limit_with_margin(estimate)
