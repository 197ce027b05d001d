"""
Loan DAO: single-writer facade over the governance components.

Every public operation, mutating or not, runs under one re-entrant
lock, so concurrent callers observe some serial order of operations and
never a partially applied one. Each mutating operation either commits
in full or raises a DAOError having changed nothing.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from ..constants import LOAN_ISSUANCE_RATE, LOAN_ISSUANCE_TERM, SNAPSHOT_FORMAT_VERSION
from ..exceptions import DAOError, ProposalNotFoundError, StorageError, WomEmpowerException
from ..logger import get_logger
from .context import CallContext
from .events import (
    EventJournal,
    JournalEntry,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    VoteCastEvent,
)
from .execution import ExecutionEngine, ExecutionSink, QuorumTally, RecordingSink
from .parameters import GovernanceParameters, ParameterStore
from .proposals import Proposal, ProposalRegistry, ProposalStatus
from .voting import BalanceOracle, VoteLedger, VoteRecord

logger = get_logger(__name__)


class LoanDAO:
    """
    Governance ledger for loan approvals.

    Collaborators:
        oracle:  BalanceOracle consulted when a vote is cast
        sink:    ExecutionSink invoked when a funded proposal executes
    """

    def __init__(
        self,
        oracle: BalanceOracle,
        sink: Optional[ExecutionSink] = None,
        parameters: Optional[GovernanceParameters] = None,
        issuance_rate: int = LOAN_ISSUANCE_RATE,
        issuance_term: int = LOAN_ISSUANCE_TERM,
    ):
        self._lock = threading.RLock()
        self.journal = EventJournal()
        self.parameters = ParameterStore(parameters)
        self.registry = ProposalRegistry(self.parameters, self.journal)
        self.ledger = VoteLedger(self.registry, oracle, self.journal)
        self.engine = ExecutionEngine(
            self.registry,
            self.parameters,
            sink if sink is not None else RecordingSink(),
            self.journal,
            issuance_rate=issuance_rate,
            issuance_term=issuance_term,
        )

    @contextmanager
    def _mutation(self, action: str):
        """Hold the lock for one mutating call; log rejections at DEBUG."""
        with self._lock:
            try:
                yield
            except DAOError as e:
                logger.debug(f"{action} rejected: {e.kind} ({e})")
                raise

    # ── Parameter store ───────────────────────────────────────────────

    def get_quorum_percent(self) -> int:
        with self._lock:
            return self.parameters.quorum_percent

    def get_proposal_duration(self) -> int:
        with self._lock:
            return self.parameters.proposal_duration

    def get_total_supply(self) -> int:
        with self._lock:
            return self.parameters.total_supply

    def get_admin_authority(self) -> str:
        with self._lock:
            return self.parameters.admin_authority

    def set_quorum_percent(self, ctx: CallContext, new_percent: int) -> bool:
        with self._mutation("set-quorum-percent"):
            return self.parameters.set_quorum_percent(ctx, new_percent)

    def set_proposal_duration(self, ctx: CallContext, new_duration: int) -> bool:
        with self._mutation("set-proposal-duration"):
            return self.parameters.set_proposal_duration(ctx, new_duration)

    def set_admin_authority(self, ctx: CallContext, new_authority: str) -> bool:
        with self._mutation("set-admin-authority"):
            return self.parameters.set_admin_authority(ctx, new_authority)

    def set_total_supply(self, ctx: CallContext, new_supply: int) -> bool:
        with self._mutation("set-total-supply"):
            return self.parameters.set_total_supply(ctx, new_supply)

    # ── Proposals ─────────────────────────────────────────────────────

    def propose(
        self,
        ctx: CallContext,
        title: str,
        description: str,
        funding_ref: Optional[int] = None,
        executor: Optional[str] = None,
    ) -> int:
        with self._mutation("propose"):
            return self.registry.propose(ctx, title, description, funding_ref, executor)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self._lock:
            return self.registry.get(proposal_id)

    def get_proposal_by_title(self, title: str) -> Optional[Proposal]:
        with self._lock:
            return self.registry.get_by_title(title)

    def get_proposal_count(self) -> int:
        with self._lock:
            return self.registry.count

    def get_total_votes(self, proposal_id: int) -> int:
        with self._lock:
            return self.registry.total_votes(proposal_id)

    def list_proposals(self) -> List[Proposal]:
        with self._lock:
            return self.registry.all_proposals()

    def status_of(self, proposal_id: int, height: int) -> ProposalStatus:
        with self._lock:
            proposal = self.registry.get(proposal_id)
            if proposal is None:
                raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
            return proposal.status_at(height)

    # ── Votes ─────────────────────────────────────────────────────────

    def vote(self, ctx: CallContext, proposal_id: int, choice, weight: int) -> bool:
        with self._mutation("vote"):
            return self.ledger.vote(ctx, proposal_id, choice, weight)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        with self._lock:
            return self.ledger.get_vote(proposal_id, voter)

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        with self._lock:
            return self.ledger.has_voted(proposal_id, voter)

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        with self._lock:
            return self.ledger.get_votes(proposal_id)

    def voter_count(self, proposal_id: int) -> int:
        with self._lock:
            return self.ledger.voter_count(proposal_id)

    # ── Execution ─────────────────────────────────────────────────────

    def execute(self, ctx: CallContext, proposal_id: int) -> bool:
        with self._mutation("execute"):
            return self.engine.execute(ctx, proposal_id)

    def tally(self, proposal_id: int) -> QuorumTally:
        with self._lock:
            return self.engine.tally(proposal_id)

    # ── Notifications ─────────────────────────────────────────────────

    def subscribe(self, listener: Callable[[Any], None]):
        with self._lock:
            self.journal.subscribe(listener)

    @property
    def events(self) -> List[Any]:
        with self._lock:
            return self.journal.events

    def journal_entries(self) -> List[JournalEntry]:
        with self._lock:
            return self.journal.entries

    def verify_journal(self):
        with self._lock:
            return self.journal.verify()

    # ── Snapshots ─────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "version": SNAPSHOT_FORMAT_VERSION,
                "parameters": self.parameters.to_dict(),
                "issuance": {
                    "rate": self.engine.issuance_rate,
                    "term": self.engine.issuance_term,
                },
                "registry": self.registry.to_dict(),
                "votes": self.ledger.to_list(),
                "executionLog": self.engine.execution_log,
                "journal": self.journal.to_list(),
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        oracle: BalanceOracle,
        sink: Optional[ExecutionSink] = None,
    ) -> "LoanDAO":
        """
        Rebuild a DAO from ``to_dict`` output.

        Raises StorageError if the format version is unknown or the event
        journal does not verify.
        """
        version = data.get("version")
        if version != SNAPSHOT_FORMAT_VERSION:
            raise StorageError(f"Unsupported snapshot version: {version!r}")

        issuance = data.get("issuance", {})
        try:
            dao = cls(
                oracle=oracle,
                sink=sink,
                parameters=GovernanceParameters.from_dict(data["parameters"]),
                issuance_rate=issuance.get("rate", LOAN_ISSUANCE_RATE),
                issuance_term=issuance.get("term", LOAN_ISSUANCE_TERM),
            )
            dao.registry.load(data.get("registry", {}))
            dao.ledger.load(data.get("votes", []))
            dao.engine.load_log(data.get("executionLog", []))
            dao.journal.load(data.get("journal", []))
        except (WomEmpowerException, AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Malformed snapshot: {e}") from e

        ok, bad_seq = dao.journal.verify()
        if not ok:
            raise StorageError(f"Event journal verification failed at entry #{bad_seq}")
        dao._check_against_journal()

        logger.info(
            f"DAO restored: {dao.registry.count} proposals, {len(dao.journal)} events"
        )
        return dao

    def _check_against_journal(self):
        """Replay the journal and compare it with the restored state."""
        created: Dict[int, str] = {}
        executed = set()
        yes: Dict[int, int] = {}
        no: Dict[int, int] = {}
        voters = set()
        for event in self.journal.events:
            if isinstance(event, ProposalCreatedEvent):
                created[event.proposal_id] = event.title
            elif isinstance(event, VoteCastEvent):
                tally = yes if event.choice else no
                tally[event.proposal_id] = tally.get(event.proposal_id, 0) + event.weight
                voters.add((event.proposal_id, event.voter, event.choice, event.weight))
            elif isinstance(event, ProposalExecutedEvent):
                executed.add(event.proposal_id)

        proposals = self.registry.all_proposals()
        if set(created) != {p.id for p in proposals} or len(created) != self.registry.count:
            raise StorageError("Proposals do not match the event journal")
        if len({p.title for p in proposals}) != len(proposals):
            raise StorageError("Snapshot holds duplicate proposal titles")
        for p in proposals:
            if p.title != created[p.id]:
                raise StorageError(f"Title of proposal #{p.id} does not match the event journal")
            if p.yes_weight != yes.get(p.id, 0) or p.no_weight != no.get(p.id, 0):
                raise StorageError(f"Tally of proposal #{p.id} does not match the event journal")
            if p.executed != (p.id in executed):
                raise StorageError(f"Executed flag of proposal #{p.id} does not match the event journal")

        recorded = {
            (v.proposal_id, v.voter, v.voted_yes, v.weight)
            for p in proposals
            for v in self.ledger.get_votes(p.id)
        }
        if recorded != voters:
            raise StorageError("Votes do not match the event journal")

    def __repr__(self) -> str:
        return (
            f"<LoanDAO proposals={self.registry.count} "
            f"events={len(self.journal)} {self.parameters!r}>"
        )
