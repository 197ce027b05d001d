"""
Governance Notifications & Event Journal

Every successful state transition emits exactly one notification:
  - ProposalCreatedEvent   (propose)
  - VoteCastEvent          (vote)
  - ProposalExecutedEvent  (execute)

The EventJournal appends them in commit order and links each entry to
its predecessor with a blake2b-256 digest, so an edited, dropped or
reordered entry is detectable with ``verify()``.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..constants import (
    EVENT_PROPOSAL_CREATED,
    EVENT_PROPOSAL_EXECUTED,
    EVENT_VOTE_CAST,
    JOURNAL_DIGEST_SIZE,
    JOURNAL_GENESIS_HASH,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalCreatedEvent:
    """Emitted when a proposal is stored."""
    proposal_id: int
    title: str
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": EVENT_PROPOSAL_CREATED,
            "id": self.proposal_id,
            "title": self.title,
            "height": self.height,
        }


@dataclass(frozen=True)
class VoteCastEvent:
    """Emitted when a vote is recorded."""
    proposal_id: int
    voter: str
    choice: bool
    weight: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": EVENT_VOTE_CAST,
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "yes": self.choice,
            "amount": self.weight,
            "height": self.height,
        }


@dataclass(frozen=True)
class ProposalExecutedEvent:
    """Emitted when a proposal flips to executed."""
    proposal_id: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": EVENT_PROPOSAL_EXECUTED,
            "id": self.proposal_id,
            "height": self.height,
        }


_EVENT_TYPES = {
    EVENT_PROPOSAL_CREATED: lambda d: ProposalCreatedEvent(
        proposal_id=d["id"], title=d["title"], height=d["height"],
    ),
    EVENT_VOTE_CAST: lambda d: VoteCastEvent(
        proposal_id=d["proposalId"], voter=d["voter"], choice=d["yes"],
        weight=d["amount"], height=d["height"],
    ),
    EVENT_PROPOSAL_EXECUTED: lambda d: ProposalExecutedEvent(
        proposal_id=d["id"], height=d["height"],
    ),
}


def event_from_dict(data: Dict[str, Any]):
    """Rebuild an event dataclass from its ``to_dict`` form."""
    try:
        factory = _EVENT_TYPES[data["event"]]
    except KeyError:
        raise ValueError(f"Unknown event type: {data.get('event')!r}")
    return factory(data)


# ══════════════════════════════════════════════════════════════════════
#  JOURNAL
# ══════════════════════════════════════════════════════════════════════

def _digest(seq: int, prev_hash: str, payload: Dict[str, Any]) -> str:
    body = json.dumps(
        {"seq": seq, "prev": prev_hash, "payload": payload},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.blake2b(body, digest_size=JOURNAL_DIGEST_SIZE).hexdigest()


@dataclass(frozen=True)
class JournalEntry:
    """One hash-linked notification."""
    seq: int
    event: Any
    prev_hash: str
    entry_hash: str

    @property
    def name(self) -> str:
        return self.event.to_dict()["event"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "payload": self.event.to_dict(),
            "prevHash": self.prev_hash,
            "hash": self.entry_hash,
        }


class EventJournal:
    """
    Append-only, hash-chained log of governance notifications.

    Listeners registered with ``subscribe`` are called synchronously, in
    journal order, after the entry is appended. A failing listener is
    logged and skipped; it never undoes the committed operation.
    """

    def __init__(self):
        self._entries: List[JournalEntry] = []
        self._listeners: List[Callable[[Any], None]] = []

    # ── Subscriptions ─────────────────────────────────────────────────

    def subscribe(self, listener: Callable[[Any], None]):
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[Any], None]):
        self._listeners = [l for l in self._listeners if l is not listener]

    # ── Append ────────────────────────────────────────────────────────

    @property
    def head_hash(self) -> str:
        if not self._entries:
            return JOURNAL_GENESIS_HASH
        return self._entries[-1].entry_hash

    def emit(self, event) -> JournalEntry:
        seq = len(self._entries)
        prev_hash = self.head_hash
        entry = JournalEntry(
            seq=seq,
            event=event,
            prev_hash=prev_hash,
            entry_hash=_digest(seq, prev_hash, event.to_dict()),
        )
        self._entries.append(entry)
        logger.debug(f"Event #{seq} {entry.name} appended (hash={entry.entry_hash[:16]})")

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener {listener!r} failed on {entry.name}")
        return entry

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def entries(self) -> List[JournalEntry]:
        return list(self._entries)

    @property
    def events(self) -> List[Any]:
        return [e.event for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    # ── Verification ──────────────────────────────────────────────────

    def verify(self) -> Tuple[bool, Optional[int]]:
        """
        Recompute the chain.

        Returns (True, None) when intact, else (False, seq) with the
        sequence number of the first entry that does not check out.
        """
        return verify_entries(self._entries)

    # ── Serialization ─────────────────────────────────────────────────

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def load(self, data: List[Dict[str, Any]]):
        """Replace entries exactly as stored; call ``verify()`` afterwards."""
        entries = []
        for raw in data:
            entries.append(JournalEntry(
                seq=raw["seq"],
                event=event_from_dict(raw["payload"]),
                prev_hash=raw["prevHash"],
                entry_hash=raw["hash"],
            ))
        self._entries = entries

    def __repr__(self) -> str:
        return f"<EventJournal entries={len(self._entries)} head={self.head_hash[:16]}>"


def verify_entries(entries: List[JournalEntry]) -> Tuple[bool, Optional[int]]:
    prev_hash = JOURNAL_GENESIS_HASH
    for index, entry in enumerate(entries):
        if entry.seq != index or entry.prev_hash != prev_hash:
            return False, index
        if _digest(entry.seq, entry.prev_hash, entry.event.to_dict()) != entry.entry_hash:
            return False, index
        prev_hash = entry.entry_hash
    return True, None
