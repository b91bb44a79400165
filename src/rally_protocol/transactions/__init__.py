from .bases import MetaTxStrategy, SupportProbe, PreparedCall
from .permit import PermitTransaction
from .meta_transaction import MetaTransaction

__all__ = [
    "MetaTxStrategy",
    "SupportProbe",
    "PreparedCall",
    "PermitTransaction",
    "MetaTransaction",
]
