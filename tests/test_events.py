"""
Event Journal Test Suite

Coverage:
  - event payloads
  - hash chaining and verification
  - tamper detection on edited, dropped and reordered entries
  - listener delivery and failure isolation
"""

import os
import sys
from unittest.mock import MagicMock

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from womempower.constants import JOURNAL_GENESIS_HASH
from womempower.governance.events import (
    EventJournal,
    ProposalCreatedEvent,
    ProposalExecutedEvent,
    VoteCastEvent,
    event_from_dict,
    verify_entries,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "SP1ALICE"
BOB = "SP2BOB"

SAMPLE_EVENTS = [
    ProposalCreatedEvent(proposal_id=1, title="Loan for Amina", height=0),
    VoteCastEvent(proposal_id=1, voter=ALICE, choice=True, weight=600, height=10),
    VoteCastEvent(proposal_id=1, voter=BOB, choice=False, weight=100, height=11),
    ProposalExecutedEvent(proposal_id=1, height=145),
]


def make_journal(events=SAMPLE_EVENTS) -> EventJournal:
    journal = EventJournal()
    for event in events:
        journal.emit(event)
    return journal


# ══════════════════════════════════════════════════════════════════════
#  PAYLOADS
# ══════════════════════════════════════════════════════════════════════


class TestEventPayloads:

    def test_names(self):
        assert [e.to_dict()["event"] for e in SAMPLE_EVENTS] == [
            "proposal-created", "vote-cast", "vote-cast", "proposal-executed",
        ]

    def test_vote_cast_payload(self):
        assert SAMPLE_EVENTS[1].to_dict() == {
            "event": "vote-cast",
            "proposalId": 1,
            "voter": ALICE,
            "yes": True,
            "amount": 600,
            "height": 10,
        }

    @pytest.mark.parametrize("event", SAMPLE_EVENTS)
    def test_from_dict(self, event):
        assert event_from_dict(event.to_dict()) == event

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            event_from_dict({"event": "proposal-vetoed"})


# ══════════════════════════════════════════════════════════════════════
#  CHAIN
# ══════════════════════════════════════════════════════════════════════


class TestJournalChain:

    def test_empty(self):
        journal = EventJournal()
        assert len(journal) == 0
        assert journal.head_hash == JOURNAL_GENESIS_HASH
        assert journal.verify() == (True, None)

    def test_linking(self):
        journal = make_journal()
        entries = journal.entries
        assert [e.seq for e in entries] == [0, 1, 2, 3]
        assert entries[0].prev_hash == JOURNAL_GENESIS_HASH
        for prev, cur in zip(entries, entries[1:]):
            assert cur.prev_hash == prev.entry_hash
        assert journal.head_hash == entries[-1].entry_hash
        assert journal.verify() == (True, None)

    def test_events_in_order(self):
        assert make_journal().events == SAMPLE_EVENTS

    def test_deterministic_hashes(self):
        assert make_journal().head_hash == make_journal().head_hash

    def test_load_round_trip(self):
        journal = make_journal()
        restored = EventJournal()
        restored.load(journal.to_list())
        assert restored.entries == journal.entries
        assert restored.verify() == (True, None)


class TestJournalTampering:

    def load(self, data) -> EventJournal:
        journal = EventJournal()
        journal.load(data)
        return journal

    def test_edited_payload(self):
        data = make_journal().to_list()
        data[1]["payload"]["amount"] = 6000
        assert self.load(data).verify() == (False, 1)

    def test_dropped_entry(self):
        data = make_journal().to_list()
        del data[2]
        assert self.load(data).verify() == (False, 2)

    def test_reordered_entries(self):
        data = make_journal().to_list()
        data[1], data[2] = data[2], data[1]
        ok, seq = self.load(data).verify()
        assert not ok
        assert seq == 1

    def test_rewritten_hash(self):
        data = make_journal().to_list()
        data[3]["hash"] = "ff" * 32
        assert verify_entries(self.load(data).entries) == (False, 3)


# ══════════════════════════════════════════════════════════════════════
#  LISTENERS
# ══════════════════════════════════════════════════════════════════════


class TestJournalListeners:

    def test_delivery_order(self):
        received = []
        journal = EventJournal()
        journal.subscribe(received.append)
        for event in SAMPLE_EVENTS:
            journal.emit(event)
        assert received == SAMPLE_EVENTS

    def test_failing_listener_does_not_propagate(self):
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock()
        journal = EventJournal()
        journal.subscribe(bad)
        journal.subscribe(good)
        entry = journal.emit(SAMPLE_EVENTS[0])
        assert entry.seq == 0
        assert len(journal) == 1
        good.assert_called_once_with(SAMPLE_EVENTS[0])

    def test_unsubscribe(self):
        listener = MagicMock()
        journal = EventJournal()
        journal.subscribe(listener)
        journal.unsubscribe(listener)
        journal.emit(SAMPLE_EVENTS[0])
        listener.assert_not_called()
