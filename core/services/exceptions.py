"""
Sybil Action Custom Exceptions
Typed failures surfaced by each component to its caller
"""
from typing import Optional


class SybilActionError(Exception):
    """
    Base exception for sybil action errors

    The pipeline fills `stage` and `stranded` before re-raising so callers can
    report which stage aborted and where value was left behind
    """

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.stage = None
        self.stranded = None


class ConfigurationError(SybilActionError):
    """Unknown asset, missing credential or missing startup parameter (fatal)"""
    pass


class TransferSubmissionError(SybilActionError):
    """Source-chain bridge transfer rejected or not confirmed"""
    pass


class AttestationTimeoutError(SybilActionError):
    """Signed approval not obtained in time; funds may be locked mid-bridge"""

    def __init__(self, message: str, handle=None, elapsed: Optional[float] = None):
        super().__init__(message)
        self.handle = handle
        self.elapsed = elapsed


class RedeemError(SybilActionError):
    """Destination-chain redemption rejected for a reason other than 'already executed'"""
    pass


class SwapError(SybilActionError):
    """DEX swap failed its slippage floor or reverted"""
    pass


class ChainTransactionError(Exception):
    """Raised by chain clients when a transaction reverts, is rejected or times out"""

    def __init__(self, message: str, tx_id: Optional[str] = None, timed_out: bool = False):
        super().__init__(message)
        self.tx_id = tx_id
        self.timed_out = timed_out


class TransferAlreadyRedeemed(ChainTransactionError):
    """Raised by bridge chains when the destination reports the VAA as already executed"""
    pass
