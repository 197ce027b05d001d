"""
Quorum & Execution Engine

Implements:
  - QuorumTally: participation vs. floor(total_supply * quorum% / 100),
    strict yes > no majority
  - ExecutionSink: the external collaborator that issues the loan a
    passed proposal references
  - ExecutionEngine: validates a closed proposal, calls the sink, then
    flips the proposal to executed (terminal, one-shot)
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from ..constants import LOAN_ISSUANCE_RATE, LOAN_ISSUANCE_TERM
from ..exceptions import (
    AlreadyExecutedError,
    ExecutionFailedError,
    InsufficientQuorumError,
    InsufficientVoteError,
    NotOpenError,
    ProposalNotFoundError,
)
from ..logger import get_logger
from .context import CallContext
from .events import EventJournal, ProposalExecutedEvent
from .parameters import ParameterStore
from .proposals import Proposal, ProposalRegistry

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION SINKS
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class ExecutionSink(Protocol):
    """Fulfils the real-world effect of a passed proposal."""

    def issue(self, funding_ref: int, rate: int, term: int) -> bool:
        ...


@dataclass(frozen=True)
class IssuanceRecord:
    """A loan issuance requested by an executed proposal."""
    funding_ref: int
    rate: int
    term: int

    def to_dict(self) -> Dict[str, Any]:
        return {"loanId": self.funding_ref, "rate": self.rate, "term": self.term}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssuanceRecord":
        return cls(funding_ref=data["loanId"], rate=data["rate"], term=data["term"])


class RecordingSink:
    """In-memory sink that accepts every issuance and remembers it."""

    def __init__(self, issuances: Optional[List[IssuanceRecord]] = None):
        self._issuances: List[IssuanceRecord] = list(issuances or [])

    def issue(self, funding_ref: int, rate: int, term: int) -> bool:
        self._issuances.append(IssuanceRecord(funding_ref=funding_ref, rate=rate, term=term))
        return True

    @property
    def issuances(self) -> List[IssuanceRecord]:
        return list(self._issuances)

    def __repr__(self) -> str:
        return f"<RecordingSink issued={len(self._issuances)}>"


class CallableSink:
    """Adapts a plain ``fn(funding_ref, rate, term) -> bool`` to ExecutionSink."""

    def __init__(self, fn: Callable[[int, int, int], bool]):
        self._fn = fn

    def issue(self, funding_ref: int, rate: int, term: int) -> bool:
        return self._fn(funding_ref, rate, term)


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class QuorumTally:
    """Outcome arithmetic for one proposal under the current parameters."""
    proposal_id: int
    yes_weight: int
    no_weight: int
    total_supply: int
    quorum_percent: int

    @property
    def total_votes(self) -> int:
        return self.yes_weight + self.no_weight

    @property
    def threshold(self) -> int:
        """Integer (floor) division, never rounded up."""
        return self.total_supply * self.quorum_percent // 100

    @property
    def quorum_reached(self) -> bool:
        return self.total_votes >= self.threshold

    @property
    def majority_reached(self) -> bool:
        """Ties fail."""
        return self.yes_weight > self.no_weight

    @property
    def passes(self) -> bool:
        return self.quorum_reached and self.majority_reached

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "yesVotes": self.yes_weight,
            "noVotes": self.no_weight,
            "totalVotes": self.total_votes,
            "totalSupply": self.total_supply,
            "quorumPercent": self.quorum_percent,
            "threshold": self.threshold,
            "quorumReached": self.quorum_reached,
            "majorityReached": self.majority_reached,
            "passes": self.passes,
        }

    @classmethod
    def for_proposal(cls, proposal: Proposal, parameters: ParameterStore) -> "QuorumTally":
        return cls(
            proposal_id=proposal.id,
            yes_weight=proposal.yes_weight,
            no_weight=proposal.no_weight,
            total_supply=parameters.total_supply,
            quorum_percent=parameters.quorum_percent,
        )


# ══════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════

class ExecutionEngine:
    """
    Executes proposals once voting has closed.

    The executed flag is set only after the sink succeeds; a sink
    failure leaves the proposal CLOSED and the call may be retried.
    """

    def __init__(
        self,
        registry: ProposalRegistry,
        parameters: ParameterStore,
        sink: ExecutionSink,
        journal: EventJournal,
        issuance_rate: int = LOAN_ISSUANCE_RATE,
        issuance_term: int = LOAN_ISSUANCE_TERM,
    ):
        self._registry = registry
        self._parameters = parameters
        self._sink = sink
        self._journal = journal
        self.issuance_rate = issuance_rate
        self.issuance_term = issuance_term
        self._execution_log: List[Dict[str, Any]] = []

    @property
    def sink(self) -> ExecutionSink:
        return self._sink

    def tally(self, proposal_id: int) -> QuorumTally:
        proposal = self._registry.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        return QuorumTally.for_proposal(proposal, self._parameters)

    # ── Execute ───────────────────────────────────────────────────────

    def execute(self, ctx: CallContext, proposal_id: int) -> bool:
        """
        Execute a proposal.

        Checks:
            1. Proposal exists                 (ProposalNotFoundError)
            2. ctx.height > end height         (NotOpenError)
            3. Not yet executed                (AlreadyExecutedError)
            4. yes + no >= quorum threshold    (InsufficientQuorumError)
            5. yes > no                        (InsufficientVoteError)
        Then issues the referenced loan (if any) and marks the proposal
        executed.
        """
        proposal = self._registry.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        if ctx.height <= proposal.end_height:
            raise NotOpenError(
                f"Proposal #{proposal_id} is still open until height {proposal.end_height}"
            )
        if proposal.executed:
            raise AlreadyExecutedError(
                f"Proposal #{proposal_id} was executed at height {proposal.executed_height}"
            )

        tally = QuorumTally.for_proposal(proposal, self._parameters)
        if not tally.quorum_reached:
            raise InsufficientQuorumError(
                f"Proposal #{proposal_id}: {tally.total_votes} votes < quorum {tally.threshold}"
            )
        if not tally.majority_reached:
            raise InsufficientVoteError(
                f"Proposal #{proposal_id}: yes {tally.yes_weight} does not exceed no {tally.no_weight}"
            )

        if proposal.funding_ref is not None:
            self._issue(proposal)

        proposal.mark_executed(ctx.height)
        self._execution_log.append({
            "proposalId": proposal_id,
            "loanId": proposal.funding_ref,
            "executedBy": ctx.caller,
            "height": ctx.height,
            "tally": tally.to_dict(),
        })

        logger.info(
            f"Proposal #{proposal_id} EXECUTED by {ctx.caller} "
            f"(yes={tally.yes_weight}, no={tally.no_weight}, threshold={tally.threshold}, height={ctx.height})"
        )
        self._journal.emit(ProposalExecutedEvent(proposal_id=proposal_id, height=ctx.height))
        return True

    def _issue(self, proposal: Proposal):
        ref = proposal.funding_ref
        try:
            ok = self._sink.issue(ref, self.issuance_rate, self.issuance_term)
        except Exception as e:
            logger.warning(f"Proposal #{proposal.id}: loan {ref} issuance raised: {e}")
            raise ExecutionFailedError(
                f"Issuing loan {ref} for proposal #{proposal.id} failed: {e}"
            ) from e
        if not ok:
            logger.warning(f"Proposal #{proposal.id}: loan {ref} issuance rejected by sink")
            raise ExecutionFailedError(
                f"Issuing loan {ref} for proposal #{proposal.id} was rejected"
            )

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return list(self._execution_log)

    def execution_count(self) -> int:
        return len(self._execution_log)

    def load_log(self, data: List[Dict[str, Any]]):
        self._execution_log = list(data)

    def __repr__(self) -> str:
        return f"<ExecutionEngine executed={len(self._execution_log)} sink={self._sink!r}>"
