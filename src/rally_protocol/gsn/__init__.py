from .models import (
    ForwardRequest,
    RelayData,
    RelayRequest,
    GsnTransactionDetails,
    RelayHttpRequest,
)
from .helper import GsnTransactionHelper
from .http_client import RelayHttpClient
from .client import GsnClient

__all__ = [
    "ForwardRequest",
    "RelayData",
    "RelayRequest",
    "GsnTransactionDetails",
    "RelayHttpRequest",
    "GsnTransactionHelper",
    "RelayHttpClient",
    "GsnClient",
]
