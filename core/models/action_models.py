"""
Action Models
Data models for assets, routes, bridge hops and in-flight sybil actions
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ChainId(int, Enum):
    """Wormhole chain identifiers of the two supported chains"""
    SOLANA = 1
    ETHEREUM = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


# Chain A / chain B of the routing table
CHAIN_A = ChainId.SOLANA
CHAIN_B = ChainId.ETHEREUM


class Direction(str, Enum):
    """Route classification by the home chains of the two assets"""
    BOTH_ON_A = "both_on_a"
    A_TO_B = "a_to_b"
    B_TO_A = "b_to_a"
    BOTH_ON_B = "both_on_b"

    @property
    def is_cross_chain(self) -> bool:
        return self in (Direction.A_TO_B, Direction.B_TO_A)


class ActionStage(str, Enum):
    """Stages of a single sybil action"""
    CREATED = "created"
    SOURCE_SWAP = "source_swap"
    BRIDGE_SUBMIT = "bridge_submit"
    BRIDGE_ATTESTATION = "bridge_attestation"
    BRIDGE_REDEEM = "bridge_redeem"
    DEST_SWAP = "dest_swap"
    COMPLETED = "completed"
    FAILED = "failed"


class HopState(str, Enum):
    """Bridge hop state machine"""
    SUBMITTED = "submitted"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REDEEMED = "redeemed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


HOP_TRANSITIONS = {
    HopState.SUBMITTED: {HopState.AWAITING_APPROVAL, HopState.FAILED},
    HopState.AWAITING_APPROVAL: {HopState.APPROVED, HopState.TIMED_OUT},
    HopState.APPROVED: {HopState.REDEEMED, HopState.FAILED},
    HopState.REDEEMED: set(),
    HopState.FAILED: set(),
    HopState.TIMED_OUT: set(),
}


@dataclass(frozen=True)
class Asset:
    """A token on one chain"""
    symbol: str
    chain: ChainId
    address: str  # ERC-20 address or SPL mint
    decimals: int

    def __str__(self) -> str:
        return f"{self.symbol}@{self.chain.label}"


@dataclass(frozen=True)
class SequenceHandle:
    """Lookup key of a transfer on the guardian network"""
    chain: ChainId
    emitter_address: str  # 64 lowercase hex chars, no 0x prefix
    sequence: int

    def __str__(self) -> str:
        return f"{int(self.chain)}/{self.emitter_address}/{self.sequence}"


@dataclass(frozen=True)
class SignedApproval:
    """Guardian-signed VAA for one transfer (opaque)"""
    handle: SequenceHandle
    vaa_bytes: bytes = field(repr=False)


@dataclass(frozen=True)
class BridgeTransfer:
    """Unit of cross-chain movement"""
    source_chain: ChainId
    destination_chain: ChainId
    asset: Asset  # transit asset on the source chain
    amount: int  # base units of `asset`
    recipient: bytes  # 32 byte recipient on the destination chain


@dataclass(frozen=True)
class RedeemReceipt:
    """Outcome of a redemption on the destination chain"""
    chain: ChainId
    tx_id: Optional[str]
    already_executed: bool = False


@dataclass
class BridgeHop:
    """
    One bridge hop of an action
    Owned by the task executing the action, never shared
    """
    transfer: BridgeTransfer
    state: HopState = HopState.SUBMITTED
    source_tx_id: Optional[str] = None
    handle: Optional[SequenceHandle] = None
    approval: Optional[SignedApproval] = None
    receipt: Optional[RedeemReceipt] = None
    history: List[HopState] = field(default_factory=lambda: [HopState.SUBMITTED])

    def advance(self, new_state: HopState) -> None:
        """Move to `new_state`, rejecting transitions the state machine does not allow"""
        if new_state not in HOP_TRANSITIONS[self.state]:
            raise ValueError(f"Illegal bridge hop transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class StrandedFunds:
    """Where value was left when an action aborted"""
    stage: ActionStage
    chain: ChainId
    asset: str
    amount: int  # base units
    handle: Optional[SequenceHandle] = None
    note: str = ""

    def describe(self) -> str:
        text = f"{self.amount} base units of {self.asset} held on {self.chain.label} after {self.stage.value}"
        if self.handle:
            text += f" (sequence {self.handle})"
        if self.note:
            text += f" - {self.note}"
        return text


@dataclass
class PendingAction:
    """
    In-flight record of one sybil action
    Created when the action starts, discarded when it completes or fails
    """
    source: Asset
    destination: Asset
    amount: int
    direction: Direction
    stage: ActionStage = ActionStage.CREATED
    amounts: Dict[str, int] = field(default_factory=dict)  # completed stage -> output amount
    hop: Optional[BridgeHop] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def enter(self, stage: ActionStage) -> None:
        self.stage = stage

    def record(self, stage: ActionStage, amount: int) -> None:
        self.amounts[stage.value] = amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for logging"""
        return {
            'source': str(self.source),
            'destination': str(self.destination),
            'amount': self.amount,
            'direction': self.direction.value,
            'stage': self.stage.value,
            'amounts': dict(self.amounts),
            'hop_state': self.hop.state.value if self.hop else None,
            'started_at': self.started_at.isoformat(),
        }


@dataclass(frozen=True)
class ActionResult:
    """Successful action output"""
    direction: Direction
    source: Asset
    destination: Asset
    amount_in: int
    amount_out: int
    amounts: Dict[str, int]
    receipt: Optional[RedeemReceipt] = None


@dataclass
class ActionOutcome:
    """Per-action report produced by the generator"""
    index: int
    source_symbol: str
    dest_symbol: str
    success: bool
    result: Optional[ActionResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    stage: Optional[ActionStage] = None
    stranded: Optional[StrandedFunds] = None
