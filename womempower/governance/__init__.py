"""
WomEmpower Loan Governance

Provides:
  - CallContext                                  (context.py)
  - GovernanceParameters / ParameterStore        (parameters.py)
  - Proposal / ProposalStatus / ProposalRegistry (proposals.py)
  - BalanceOracle / VoteChoice / VoteLedger      (voting.py)
  - ExecutionSink / QuorumTally / ExecutionEngine (execution.py)
  - Events / EventJournal                        (events.py)
  - LoanDAO                                      (dao.py)
"""

from .context import CallContext
from .parameters import GovernanceParameters, ParameterStore
from .proposals import (
    Proposal,
    ProposalLifecycleError,
    ProposalRegistry,
    ProposalStatus,
)
from .voting import (
    BalanceOracle,
    MappingBalanceOracle,
    VoteChoice,
    VoteLedger,
    VoteRecord,
)
from .execution import (
    CallableSink,
    ExecutionEngine,
    ExecutionSink,
    IssuanceRecord,
    QuorumTally,
    RecordingSink,
)
from .events import (
    EventJournal,
    JournalEntry,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    VoteCastEvent,
)
from .dao import LoanDAO

__all__ = [
    "CallContext",
    # Parameters
    "GovernanceParameters",
    "ParameterStore",
    # Proposals
    "Proposal",
    "ProposalLifecycleError",
    "ProposalRegistry",
    "ProposalStatus",
    # Voting
    "BalanceOracle",
    "MappingBalanceOracle",
    "VoteChoice",
    "VoteLedger",
    "VoteRecord",
    # Execution
    "CallableSink",
    "ExecutionEngine",
    "ExecutionSink",
    "IssuanceRecord",
    "QuorumTally",
    "RecordingSink",
    # Events
    "EventJournal",
    "JournalEntry",
    "ProposalCreatedEvent",
    "ProposalExecutedEvent",
    "VoteCastEvent",
    # Facade
    "LoanDAO",
]
