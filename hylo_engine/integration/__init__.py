"""
Quote composition over a protocol snapshot
"""

from .tokens import LSTS, Token, TokenKind
from .exchange_context import ExchangeContext, ExoExchangeContext, LstExchangeContext
from .protocol_snapshot import (
    ExoPairSnapshot,
    LstHeader,
    ProtocolSnapshot,
    ProtocolState,
    snapshot_from_mapping,
)
from .operations import (
    Operation,
    OperationOutput,
    compute_output,
    operation_allowed_in_mode,
    quotable_pairs_for_mode,
)
from .quote_strategy import Ledger, LedgerReplayStrategy, ProtocolStateStrategy, QuoteStrategy

__all__ = [
    "LSTS",
    "Token",
    "TokenKind",
    "ExchangeContext",
    "ExoExchangeContext",
    "LstExchangeContext",
    "ExoPairSnapshot",
    "LstHeader",
    "ProtocolSnapshot",
    "ProtocolState",
    "snapshot_from_mapping",
    "Operation",
    "OperationOutput",
    "compute_output",
    "operation_allowed_in_mode",
    "quotable_pairs_for_mode",
    "Ledger",
    "LedgerReplayStrategy",
    "ProtocolStateStrategy",
    "QuoteStrategy",
]
