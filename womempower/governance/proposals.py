"""
Loan Proposals & Proposal Registry

Defines the per-proposal state machine, the Proposal dataclass and the
registry that creates proposals, assigns monotonic ids and enforces
title uniqueness.
"""

import hashlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..constants import (
    PROPOSAL_DESCRIPTION_MAX_LENGTH,
    PROPOSAL_FIRST_ID,
    PROPOSAL_TITLE_MAX_LENGTH,
)
from ..exceptions import (
    InvalidDescriptionError,
    InvalidEndHeightError,
    InvalidExecutorError,
    InvalidFundingRefError,
    InvalidStartHeightError,
    InvalidTitleError,
    ProposalExistsError,
    WomEmpowerException,
)
from ..logger import get_logger
from .context import CallContext
from .events import EventJournal, ProposalCreatedEvent
from .parameters import ParameterStore

logger = get_logger(__name__)


class ProposalLifecycleError(WomEmpowerException):
    """Raised on illegal state transitions (internal invariant breach)."""


# ══════════════════════════════════════════════════════════════════════
#  STATE MACHINE
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Lifecycle stage of a proposal at a given ledger height."""
    OPEN = 0        # height <= end height, votes accepted
    CLOSED = 1      # height > end height, not executed; execution may be attempted
    EXECUTED = 2    # terminal


# Valid forward transitions
_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.OPEN:     {ProposalStatus.CLOSED},
    ProposalStatus.CLOSED:   {ProposalStatus.EXECUTED},
    ProposalStatus.EXECUTED: set(),
}


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A loan-approval proposal.

    Fields:
        id:               Monotonic identifier, starting at 1
        title:            Unique short title
        description:      Rationale
        funding_ref:      Optional external loan request id (positive)
        proposer:         Identity that created the proposal
        start_height:     Ledger height at creation
        end_height:       start_height + proposal duration at creation
        executor:         Optional identity disallowed as proposer; not
                          consulted again after creation
        yes_weight:       Sum of YES vote weights
        no_weight:        Sum of NO vote weights
        executed_height:  Height at which execution succeeded, if any

    Only the two weights and ``executed_height`` ever change, each in the
    forward direction only, through ``add_weight`` and ``mark_executed``.
    """
    id: int
    title: str
    description: str
    proposer: str
    start_height: int
    end_height: int
    funding_ref: Optional[int] = None
    executor: Optional[str] = None
    yes_weight: int = 0
    no_weight: int = 0
    executed_height: Optional[int] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if self.end_height <= self.start_height:
            raise ProposalLifecycleError(
                f"End height {self.end_height} must exceed start height {self.start_height}"
            )
        if not self._history:
            self._history.append({
                "from": "INIT",
                "to": ProposalStatus.OPEN.name,
                "height": self.start_height,
            })

    # ── Properties ────────────────────────────────────────────────────

    @property
    def proposal_hash(self) -> str:
        """Deterministic digest of the immutable proposal terms."""
        payload = (
            str(self.id).encode()
            + self.title.encode()
            + self.description.encode()
            + self.proposer.encode()
            + str(self.funding_ref).encode()
            + str(self.start_height).encode()
            + str(self.end_height).encode()
        )
        return hashlib.blake2b(payload, digest_size=32).hexdigest()

    @property
    def executed(self) -> bool:
        return self.executed_height is not None

    @property
    def total_votes(self) -> int:
        return self.yes_weight + self.no_weight

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def status_at(self, height: int) -> ProposalStatus:
        if self.executed:
            return ProposalStatus.EXECUTED
        if height <= self.end_height:
            return ProposalStatus.OPEN
        return ProposalStatus.CLOSED

    def is_open_at(self, height: int) -> bool:
        return self.status_at(height) == ProposalStatus.OPEN

    # ── Mutations ─────────────────────────────────────────────────────

    def add_weight(self, choice: bool, weight: int):
        if weight <= 0:
            raise ProposalLifecycleError(f"Tally weight must be positive, got {weight}")
        if choice:
            self.yes_weight += weight
        else:
            self.no_weight += weight

    def mark_executed(self, height: int):
        """CLOSED → EXECUTED. Raises ProposalLifecycleError otherwise."""
        current = self.status_at(height)
        allowed = _VALID_TRANSITIONS[current]
        if ProposalStatus.EXECUTED not in allowed:
            raise ProposalLifecycleError(
                f"Cannot transition proposal #{self.id} from {current.name} → EXECUTED"
            )
        self._history.append({
            "from": current.name,
            "to": ProposalStatus.EXECUTED.name,
            "height": height,
        })
        self.executed_height = height

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "loanId": self.funding_ref,
            "proposer": self.proposer,
            "startHeight": self.start_height,
            "endHeight": self.end_height,
            "yesVotes": self.yes_weight,
            "noVotes": self.no_weight,
            "executed": self.executed,
            "executedHeight": self.executed_height,
            "executor": self.executor,
            "proposalHash": self.proposal_hash,
            "history": self.history,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            proposer=data["proposer"],
            start_height=data["startHeight"],
            end_height=data["endHeight"],
            funding_ref=data.get("loanId"),
            executor=data.get("executor"),
            yes_weight=data.get("yesVotes", 0),
            no_weight=data.get("noVotes", 0),
            executed_height=data.get("executedHeight"),
            _history=list(data.get("history", [])),
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"yes={self.yes_weight} no={self.no_weight} executed={self.executed}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

def _validate_text(value, max_length: int) -> bool:
    return isinstance(value, str) and 0 < len(value) <= max_length


class ProposalRegistry:
    """
    Creates and stores proposals.

    Ids are handed out in strictly increasing order starting at 1 and
    are never reused. The title index grows in lockstep with the
    registry and is never pruned.
    """

    def __init__(self, parameters: ParameterStore, journal: EventJournal):
        self._parameters = parameters
        self._journal = journal
        self._proposals: Dict[int, Proposal] = {}
        self._title_index: Dict[str, int] = {}
        self._count = PROPOSAL_FIRST_ID - 1

    # ── Propose ───────────────────────────────────────────────────────

    def propose(
        self,
        ctx: CallContext,
        title: str,
        description: str,
        funding_ref: Optional[int] = None,
        executor: Optional[str] = None,
    ) -> int:
        """
        Create a proposal and return its id.

        All checks run before anything is written:
            1. title        (InvalidTitleError)
            2. description  (InvalidDescriptionError)
            3. funding_ref  (InvalidFundingRefError)
            4. start height (InvalidStartHeightError)
            5. end height   (InvalidEndHeightError)
            6. executor     (InvalidExecutorError)
            7. uniqueness   (ProposalExistsError)
        """
        if not _validate_text(title, PROPOSAL_TITLE_MAX_LENGTH):
            raise InvalidTitleError(
                f"Title must be 1-{PROPOSAL_TITLE_MAX_LENGTH} characters"
            )
        if not _validate_text(description, PROPOSAL_DESCRIPTION_MAX_LENGTH):
            raise InvalidDescriptionError(
                f"Description must be 1-{PROPOSAL_DESCRIPTION_MAX_LENGTH} characters"
            )
        if funding_ref is not None and (
            isinstance(funding_ref, bool) or not isinstance(funding_ref, int) or funding_ref <= 0
        ):
            raise InvalidFundingRefError(f"Funding reference must be a positive id, got {funding_ref!r}")

        start = ctx.height
        end = start + self._parameters.proposal_duration
        if start < ctx.height:
            raise InvalidStartHeightError(f"Start height {start} precedes height {ctx.height}")
        if end <= start:
            raise InvalidEndHeightError(f"End height {end} must exceed start height {start}")
        if executor is not None and executor == ctx.caller:
            raise InvalidExecutorError("Executor restriction cannot name the proposer")
        if title in self._title_index:
            raise ProposalExistsError(
                f"Proposal titled '{title}' already exists (#{self._title_index[title]})"
            )

        new_id = self._count + 1
        proposal = Proposal(
            id=new_id,
            title=title,
            description=description,
            proposer=ctx.caller,
            start_height=start,
            end_height=end,
            funding_ref=funding_ref,
            executor=executor,
        )
        self._proposals[new_id] = proposal
        self._title_index[title] = new_id
        self._count = new_id

        logger.info(
            f"Proposal #{new_id} created by {ctx.caller}: '{title}' "
            f"(height={start}, ends={end}, loan={funding_ref})"
        )
        self._journal.emit(ProposalCreatedEvent(proposal_id=new_id, title=title, height=ctx.height))
        return new_id

    # ── Lookup ────────────────────────────────────────────────────────

    def get(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def get_by_title(self, title: str) -> Optional[Proposal]:
        pid = self._title_index.get(title)
        return self._proposals.get(pid) if pid is not None else None

    def exists(self, proposal_id: int) -> bool:
        return proposal_id in self._proposals

    @property
    def count(self) -> int:
        return self._count

    def total_votes(self, proposal_id: int) -> int:
        """yes + no weight; an unknown id yields 0 rather than an error."""
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            return 0
        return proposal.total_votes

    def all_proposals(self) -> List[Proposal]:
        return [self._proposals[pid] for pid in sorted(self._proposals)]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalCount": self._count,
            "proposals": [p.to_dict() for p in self.all_proposals()],
        }

    def load(self, data: Dict[str, Any]):
        """Replace contents from ``to_dict`` output (used by snapshots)."""
        proposals = [Proposal.from_dict(raw) for raw in data.get("proposals", [])]
        self._proposals = {p.id: p for p in proposals}
        self._title_index = {p.title: p.id for p in proposals}
        self._count = max(data.get("proposalCount", 0), max(self._proposals, default=0))

    def __repr__(self) -> str:
        return f"<ProposalRegistry proposals={len(self._proposals)}>"
