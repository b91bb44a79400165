from .evm_network import RallyEvmNetwork
from .factory import RallyNetworkFactory, RallyNetworkType

__all__ = [
    "RallyEvmNetwork",
    "RallyNetworkFactory",
    "RallyNetworkType",
]
