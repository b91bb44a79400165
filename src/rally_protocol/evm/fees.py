"""
EIP-1559 fee estimation.

Derives ``maxFeePerGas`` and ``maxPriorityFeePerGas`` from the latest block
and the node's current gas price:

    priority = gasPrice + 10% of gasPrice - baseFee   (floored at 0)
    maxFee   = 2 * baseFee + priority

Doubling the base fee leaves headroom for one block's base fee increase.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from web3 import AsyncWeb3

from .units import DEFAULT_PRIORITY_FEE_PER_GAS


@dataclass(frozen=True)
class FeeData:
    """EIP-1559 fee pair in wei."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


class FeeEstimator:
    """
    Computes EIP-1559 fees from chain state.

    Args:
        fallback_priority_fee: Priority fee used when the node returns no
            latest block.
        logger: Optional logger; defaults to this module's logger.
    """

    def __init__(
        self,
        fallback_priority_fee: int = DEFAULT_PRIORITY_FEE_PER_GAS,
        logger: Optional[logging.Logger] = None,
    ):
        self.fallback_priority_fee = fallback_priority_fee
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def compute(base_fee: int, gas_price: int) -> FeeData:
        """
        Pure fee rule.

        Args:
            base_fee: ``baseFeePerGas`` of the latest block.
            gas_price: Node's current gas price.

        Returns:
            FeeData: priority clamped at zero, max fee = 2 * base fee + priority.
        """
        priority = gas_price + gas_price * 10 // 100 - base_fee
        if priority < 0:
            priority = 0
        return FeeData(max_fee_per_gas=2 * base_fee + priority, max_priority_fee_per_gas=priority)

    async def estimate(self, w3: AsyncWeb3) -> FeeData:
        """
        Fetch the latest block and gas price and apply the fee rule.

        A chain without ``baseFeePerGas`` (pre-London) is treated as base fee 0.
        """
        block = await w3.eth.get_block("latest")
        if not block:
            priority = self.fallback_priority_fee
            self.logger.debug("No latest block, using fallback priority fee %s", priority)
            return FeeData(max_fee_per_gas=priority, max_priority_fee_per_gas=priority)

        base_fee = int(block.get("baseFeePerGas") or 0)
        gas_price = int(await w3.eth.gas_price)
        fees = self.compute(base_fee, gas_price)
        self.logger.debug(
            "Fee estimate base=%s gas_price=%s -> max=%s priority=%s",
            base_fee, gas_price, fees.max_fee_per_gas, fees.max_priority_fee_per_gas,
        )
        return fees
