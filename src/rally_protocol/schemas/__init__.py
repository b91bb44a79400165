from .bases import CanonicalModel, WireModel
from .https import GsnServerConfigPayload, RelayHttpRequestMetadata, GsnResponse
from .versions import GsnProtocolVersion, GSN_DOMAIN_SEPARATOR_VERSION

__all__ = [
    "CanonicalModel",
    "WireModel",
    "GsnServerConfigPayload",
    "RelayHttpRequestMetadata",
    "GsnResponse",
    "GsnProtocolVersion",
    "GSN_DOMAIN_SEPARATOR_VERSION",
]
