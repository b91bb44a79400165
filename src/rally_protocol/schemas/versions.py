from enum import Enum


class GsnProtocolVersion(Enum):
    """Domain separator versions of the GSN relay hub."""
    Version3 = "3"

    @classmethod
    def from_string(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unsupported GSN protocol version: {value}")


# Version used in the EIP-712 domain of relay requests.
GSN_DOMAIN_SEPARATOR_VERSION = GsnProtocolVersion.Version3.value
