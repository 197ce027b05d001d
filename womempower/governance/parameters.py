"""
Governance Parameter Store

Holds the four mutable governance parameters (quorum percent, proposal
duration, total voting supply, admin authority). Every mutator checks
the caller against the current admin authority before validating its
argument; a rejected call leaves all parameters untouched.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from ..constants import (
    DAO_DEFAULT_ADMIN_AUTHORITY,
    DAO_DEFAULT_PROPOSAL_DURATION,
    DAO_DEFAULT_QUORUM_PERCENT,
    DAO_DEFAULT_TOTAL_SUPPLY,
    DAO_MAX_QUORUM_PERCENT,
    DAO_MIN_QUORUM_PERCENT,
)
from ..exceptions import (
    InvalidAuthorityError,
    InvalidDurationError,
    InvalidQuorumError,
    InvalidVoteAmountError,
    UnauthorizedError,
)
from ..logger import get_logger
from .context import CallContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class GovernanceParameters:
    """Immutable view of the parameter record."""
    quorum_percent: int = DAO_DEFAULT_QUORUM_PERCENT
    proposal_duration: int = DAO_DEFAULT_PROPOSAL_DURATION
    total_supply: int = DAO_DEFAULT_TOTAL_SUPPLY
    admin_authority: str = DAO_DEFAULT_ADMIN_AUTHORITY

    @property
    def quorum_threshold(self) -> int:
        """Minimum participating weight: floor(supply * percent / 100)."""
        return self.total_supply * self.quorum_percent // 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorumPercent": self.quorum_percent,
            "proposalDuration": self.proposal_duration,
            "totalSupply": self.total_supply,
            "adminAuthority": self.admin_authority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceParameters":
        return cls(
            quorum_percent=int(data["quorumPercent"]),
            proposal_duration=int(data["proposalDuration"]),
            total_supply=int(data["totalSupply"]),
            admin_authority=data["adminAuthority"],
        )


# ── Argument validation (shared with config loading) ─────────────────

def _is_int(value) -> bool:
    # bool is an int subclass but never a valid amount
    return isinstance(value, int) and not isinstance(value, bool)


def validate_quorum_percent(value: int) -> None:
    if not _is_int(value) or not DAO_MIN_QUORUM_PERCENT <= value <= DAO_MAX_QUORUM_PERCENT:
        raise InvalidQuorumError(
            f"Quorum percent must be in ({DAO_MIN_QUORUM_PERCENT - 1}, "
            f"{DAO_MAX_QUORUM_PERCENT}], got {value!r}"
        )


def validate_proposal_duration(value: int) -> None:
    if not _is_int(value) or value <= 0:
        raise InvalidDurationError(f"Proposal duration must be a positive integer, got {value!r}")


def validate_total_supply(value: int) -> None:
    if not _is_int(value) or value <= 0:
        raise InvalidVoteAmountError(f"Total supply must be a positive integer, got {value!r}")


def validate_admin_authority(value: str) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidAuthorityError(f"Admin authority must be a non-empty string, got {value!r}")


class ParameterStore:
    """
    Admin-gated configuration record.

    Reads are unrestricted. Each ``set_*`` call:
        1. requires ``ctx.caller == admin_authority`` (else UnauthorizedError)
        2. validates its argument (else the matching validation error)
        3. replaces exactly one field
    """

    def __init__(self, initial: GovernanceParameters = None):
        initial = initial or GovernanceParameters()
        validate_quorum_percent(initial.quorum_percent)
        validate_proposal_duration(initial.proposal_duration)
        validate_total_supply(initial.total_supply)
        validate_admin_authority(initial.admin_authority)
        self._params = initial

    # ── Read accessors ────────────────────────────────────────────────

    @property
    def current(self) -> GovernanceParameters:
        return self._params

    @property
    def quorum_percent(self) -> int:
        return self._params.quorum_percent

    @property
    def proposal_duration(self) -> int:
        return self._params.proposal_duration

    @property
    def total_supply(self) -> int:
        return self._params.total_supply

    @property
    def admin_authority(self) -> str:
        return self._params.admin_authority

    @property
    def quorum_threshold(self) -> int:
        return self._params.quorum_threshold

    # ── Guarded mutators ──────────────────────────────────────────────

    def _require_admin(self, ctx: CallContext, action: str):
        if ctx.caller != self._params.admin_authority:
            logger.debug(f"{action} rejected: {ctx.caller} is not the admin authority")
            raise UnauthorizedError(
                f"{ctx.caller} is not authorized to {action}"
            )

    def _replace(self, field_name: str, value: Any):
        old = getattr(self._params, field_name)
        values = asdict(self._params)
        values[field_name] = value
        self._params = GovernanceParameters(**values)
        logger.info(f"Parameter '{field_name}' changed: {old} → {value}")

    def set_quorum_percent(self, ctx: CallContext, new_percent: int) -> bool:
        self._require_admin(ctx, "set quorum percent")
        validate_quorum_percent(new_percent)
        self._replace("quorum_percent", new_percent)
        return True

    def set_proposal_duration(self, ctx: CallContext, new_duration: int) -> bool:
        self._require_admin(ctx, "set proposal duration")
        validate_proposal_duration(new_duration)
        self._replace("proposal_duration", new_duration)
        return True

    def set_admin_authority(self, ctx: CallContext, new_authority: str) -> bool:
        """
        Re-point the admin authority.

        The guard compares *new_authority* with the caller (the current
        admin), so the admin may hand authority to anyone but itself.
        """
        self._require_admin(ctx, "set admin authority")
        validate_admin_authority(new_authority)
        if new_authority == ctx.caller:
            raise InvalidAuthorityError(
                f"New admin authority must differ from caller {ctx.caller}"
            )
        self._replace("admin_authority", new_authority)
        return True

    def set_total_supply(self, ctx: CallContext, new_supply: int) -> bool:
        self._require_admin(ctx, "set total supply")
        validate_total_supply(new_supply)
        self._replace("total_supply", new_supply)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return self._params.to_dict()

    def __repr__(self) -> str:
        p = self._params
        return (
            f"<ParameterStore quorum={p.quorum_percent}% duration={p.proposal_duration} "
            f"supply={p.total_supply} admin={p.admin_authority}>"
        )
