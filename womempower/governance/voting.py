"""
Balance-Weighted Vote Ledger

Implements:
  - One vote per (proposal, voter), never overwritten
  - YES / NO choices with a positive integer weight
  - Weight bounded by the voter's balance at vote time, as reported by
    an external balance oracle (point-in-time read, nothing is locked)
  - Voting open through and including the proposal's end height
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from ..exceptions import (
    AlreadyVotedError,
    InsufficientBalanceError,
    InvalidVoteAmountError,
    ProposalExpiredError,
    ProposalNotFoundError,
)
from ..logger import get_logger
from .context import CallContext
from .events import EventJournal, VoteCastEvent
from .proposals import ProposalRegistry

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  BALANCE ORACLE
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class BalanceOracle(Protocol):
    """Reports the weight an identity may cast."""

    def get_balance(self, identity: str) -> int:
        ...


class MappingBalanceOracle:
    """Balance oracle backed by a plain mapping; unknown identities hold 0."""

    def __init__(self, balances: Optional[Mapping[str, int]] = None):
        self._balances: Dict[str, int] = dict(balances or {})

    def get_balance(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def set_balance(self, identity: str, amount: int):
        self._balances[identity] = amount

    def __repr__(self) -> str:
        return f"<MappingBalanceOracle holders={len(self._balances)}>"


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class VoteChoice(Enum):
    YES = True
    NO = False

    @classmethod
    def coerce(cls, value) -> "VoteChoice":
        """Accept a VoteChoice, a bool, or 'yes'/'no'."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls(value)
        if isinstance(value, str) and value.strip().lower() in ("yes", "no"):
            return cls.YES if value.strip().lower() == "yes" else cls.NO
        raise ValueError(f"Invalid vote choice: {value!r}")


@dataclass(frozen=True)
class VoteRecord:
    """An individual vote; immutable once recorded."""
    proposal_id: int
    voter: str
    choice: VoteChoice
    weight: int
    height: int

    @property
    def voted_yes(self) -> bool:
        return self.choice is VoteChoice.YES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "votedYes": self.voted_yes,
            "amount": self.weight,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            proposal_id=data["proposalId"],
            voter=data["voter"],
            choice=VoteChoice(bool(data["votedYes"])),
            weight=data["amount"],
            height=data.get("height", 0),
        )


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════

class VoteLedger:
    """
    Records weighted votes and updates proposal tallies.

    ``vote`` is the only path that changes a proposal's yes/no weight.
    """

    def __init__(
        self,
        registry: ProposalRegistry,
        oracle: BalanceOracle,
        journal: EventJournal,
    ):
        self._registry = registry
        self._oracle = oracle
        self._journal = journal
        self._votes: Dict[Tuple[int, str], VoteRecord] = {}
        self._order: Dict[int, List[str]] = {}  # proposal_id → voters in casting order

    @property
    def oracle(self) -> BalanceOracle:
        return self._oracle

    # ── Cast vote ─────────────────────────────────────────────────────

    def vote(self, ctx: CallContext, proposal_id: int, choice, weight: int) -> bool:
        """
        Cast ``ctx.caller``'s vote on a proposal.

        Checks, in order:
            1. proposal exists                 (ProposalNotFoundError)
            2. ctx.height <= end height        (ProposalExpiredError)
            3. caller has not voted            (AlreadyVotedError)
            4. weight > 0                      (InvalidVoteAmountError)
            5. weight <= oracle balance        (InsufficientBalanceError)
        A choice other than yes/no raises ValueError once the proposal is found.
        """
        proposal = self._registry.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        choice = VoteChoice.coerce(choice)
        if ctx.height > proposal.end_height:
            raise ProposalExpiredError(
                f"Voting on proposal #{proposal_id} ended at height {proposal.end_height}"
            )
        key = (proposal_id, ctx.caller)
        if key in self._votes:
            raise AlreadyVotedError(
                f"{ctx.caller} has already voted on proposal #{proposal_id}"
            )
        if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
            raise InvalidVoteAmountError(f"Vote weight must be a positive integer, got {weight!r}")

        balance = self._read_balance(ctx.caller)
        if weight > balance:
            raise InsufficientBalanceError(
                f"{ctx.caller} tried to vote {weight} with balance {balance}"
            )

        record = VoteRecord(
            proposal_id=proposal_id,
            voter=ctx.caller,
            choice=choice,
            weight=weight,
            height=ctx.height,
        )
        self._votes[key] = record
        self._order.setdefault(proposal_id, []).append(ctx.caller)
        proposal.add_weight(record.voted_yes, weight)

        logger.info(
            f"Vote: {ctx.caller} → {choice.name} on Proposal #{proposal_id} "
            f"(weight={weight}, height={ctx.height})"
        )
        self._journal.emit(VoteCastEvent(
            proposal_id=proposal_id,
            voter=ctx.caller,
            choice=record.voted_yes,
            weight=weight,
            height=ctx.height,
        ))
        return True

    def _read_balance(self, identity: str) -> int:
        try:
            balance = self._oracle.get_balance(identity)
        except Exception as e:
            logger.warning(f"Balance oracle failed for {identity}: {e}")
            raise InsufficientBalanceError(
                f"Balance for {identity} unavailable: {e}"
            ) from e
        if isinstance(balance, bool) or not isinstance(balance, int):
            logger.warning(f"Balance oracle returned {balance!r} for {identity}")
            raise InsufficientBalanceError(
                f"Balance for {identity} is not an integer: {balance!r}"
            )
        return balance

    # ── Queries ───────────────────────────────────────────────────────

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._votes.get((proposal_id, voter))

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return (proposal_id, voter) in self._votes

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return [self._votes[(proposal_id, v)] for v in self._order.get(proposal_id, [])]

    def voter_count(self, proposal_id: int) -> int:
        return len(self._order.get(proposal_id, []))

    # ── Serialization ─────────────────────────────────────────────────

    def to_list(self) -> List[Dict[str, Any]]:
        return [
            self._votes[(pid, voter)].to_dict()
            for pid in sorted(self._order)
            for voter in self._order[pid]
        ]

    def load(self, data: List[Dict[str, Any]]):
        """Replace contents from ``to_list`` output (used by snapshots)."""
        self._votes = {}
        self._order = {}
        for raw in data:
            record = VoteRecord.from_dict(raw)
            self._votes[(record.proposal_id, record.voter)] = record
            self._order.setdefault(record.proposal_id, []).append(record.voter)

    def __repr__(self) -> str:
        return f"<VoteLedger votes={len(self._votes)}>"
