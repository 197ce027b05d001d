"""
WomEmpower DAO Exceptions

Every rejected governance operation raises exactly one of the classes
below. Each carries a stable integer ``code`` so callers (and the CLI)
can report outcomes without matching on message text.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Stable numeric identifiers for governance failures."""
    UNAUTHORIZED = 1000
    NOT_OPEN = 1001
    INSUFFICIENT_VOTE = 1002
    INVALID_TITLE = 1003
    INVALID_DESCRIPTION = 1004
    INVALID_FUNDING_REF = 1005
    PROPOSAL_EXISTS = 1006
    PROPOSAL_NOT_FOUND = 1007
    ALREADY_VOTED = 1008
    PROPOSAL_EXPIRED = 1009
    INSUFFICIENT_QUORUM = 1010
    ALREADY_EXECUTED = 1011
    INVALID_QUORUM = 1012
    INVALID_DURATION = 1013
    INVALID_AUTHORITY = 1014
    INVALID_VOTE_AMOUNT = 1015
    INSUFFICIENT_BALANCE = 1016
    INVALID_START_HEIGHT = 1017
    INVALID_END_HEIGHT = 1018
    INVALID_EXECUTOR = 1019
    EXECUTION_FAILED = 1020


class WomEmpowerException(Exception):
    """Base exception for WomEmpower."""
    pass


class ConfigurationError(WomEmpowerException):
    """Configuration error."""
    pass


class StorageError(WomEmpowerException):
    """Snapshot could not be read, written or verified."""
    pass


class DAOError(WomEmpowerException):
    """Base class for rejected governance operations."""
    code: ErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name)

    @property
    def kind(self) -> str:
        return self.code.name


# -- Parameter store ----------------------------------------------------

class UnauthorizedError(DAOError):
    """Caller is not the admin authority."""
    code = ErrorCode.UNAUTHORIZED


class InvalidQuorumError(DAOError):
    """Quorum percent outside (0, 100]."""
    code = ErrorCode.INVALID_QUORUM


class InvalidDurationError(DAOError):
    """Proposal duration is not positive."""
    code = ErrorCode.INVALID_DURATION


class InvalidAuthorityError(DAOError):
    """New admin authority equals the caller."""
    code = ErrorCode.INVALID_AUTHORITY


# -- Proposal registry --------------------------------------------------

class InvalidTitleError(DAOError):
    code = ErrorCode.INVALID_TITLE


class InvalidDescriptionError(DAOError):
    code = ErrorCode.INVALID_DESCRIPTION


class InvalidFundingRefError(DAOError):
    code = ErrorCode.INVALID_FUNDING_REF


class InvalidStartHeightError(DAOError):
    code = ErrorCode.INVALID_START_HEIGHT


class InvalidEndHeightError(DAOError):
    code = ErrorCode.INVALID_END_HEIGHT


class InvalidExecutorError(DAOError):
    """Executor restriction names the proposer."""
    code = ErrorCode.INVALID_EXECUTOR


class ProposalExistsError(DAOError):
    """Title already used by another proposal."""
    code = ErrorCode.PROPOSAL_EXISTS


class ProposalNotFoundError(DAOError):
    code = ErrorCode.PROPOSAL_NOT_FOUND


# -- Vote ledger --------------------------------------------------------

class ProposalExpiredError(DAOError):
    """Voting window has closed."""
    code = ErrorCode.PROPOSAL_EXPIRED


class AlreadyVotedError(DAOError):
    code = ErrorCode.ALREADY_VOTED


class InvalidVoteAmountError(DAOError):
    """Weight (or total supply) is not positive."""
    code = ErrorCode.INVALID_VOTE_AMOUNT


class InsufficientBalanceError(DAOError):
    """Weight exceeds the voter's balance, or the oracle failed."""
    code = ErrorCode.INSUFFICIENT_BALANCE


# -- Execution engine ---------------------------------------------------

class NotOpenError(DAOError):
    """Execution attempted while voting is still open."""
    code = ErrorCode.NOT_OPEN


class AlreadyExecutedError(DAOError):
    code = ErrorCode.ALREADY_EXECUTED


class InsufficientQuorumError(DAOError):
    code = ErrorCode.INSUFFICIENT_QUORUM


class InsufficientVoteError(DAOError):
    """Yes weight does not strictly exceed no weight."""
    code = ErrorCode.INSUFFICIENT_VOTE


class ExecutionFailedError(DAOError):
    """Execution sink rejected or failed the issuance."""
    code = ErrorCode.EXECUTION_FAILED

