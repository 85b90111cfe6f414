"""
contribround/protocol/reputation.py

Per-round reputation ledger.

Owns the contributor records and the ordered set of contributor accounts.

Lifecycle of a record:
    registered  -> round_id = 0 (never initialized)
    first touch -> reset to {round_id = current, reputation = 1, votes = 0}
    votes       -> votes_submitted (voter) / reputation (receiver) updated
    unregistered -> record and set entry removed together

Reputation update for an accepted vote:

    new_rep = clamp(rep + sign * value * isqrt(voter_rep), 1, MAX_REPUTATION)

Weighting by the square root of the voter's own reputation gives established
contributors more influence while keeping growth sublinear. The floor of 1
keeps every contributor in the distribution with a positive weight.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..config import MAX_REPUTATION, INITIAL_REPUTATION
from .isqrt import isqrt
from .storage import StateStore, CONTRIBUTOR_PREFIX, CONTRIBUTOR_SET_KEY
from .types import ContributorRecord, VoteSign

logger = logging.getLogger("contribround.protocol.reputation")


def clamp_reputation(value: int) -> int:
    """Clamp a raw reputation into [INITIAL_REPUTATION, MAX_REPUTATION]."""
    return max(INITIAL_REPUTATION, min(value, MAX_REPUTATION))


def apply_vote(receiver_reputation: int, voter_reputation: int, sign: VoteSign, value: int) -> int:
    """
    Compute the receiver's reputation after a vote.

    Examples:
        apply_vote(1, 1, POSITIVE, 3)   -> 4
        apply_vote(4, 100, NEGATIVE, 1) -> 1  (floored)

    Args:
        receiver_reputation: Receiver's current-round reputation
        voter_reputation: Voter's current-round reputation
        sign: Vote direction
        value: Vote units

    Returns:
        New receiver reputation, always within [1, MAX_REPUTATION]
    """
    delta = sign.factor * value * isqrt(voter_reputation)
    return clamp_reputation(receiver_reputation + delta)


class ReputationLedger:
    """
    Contributor records and membership set, kept in a StateStore.

    The membership set is stored as an ordered list (registration order);
    settlement pays contributors in that order.
    """

    def __init__(self, store: StateStore):
        self.store = store

    # ========================================================================
    # MEMBERSHIP SET
    # ========================================================================

    def contributors(self) -> List[str]:
        """All contributor accounts, in registration order."""
        return list(self.store.get(CONTRIBUTOR_SET_KEY, []))

    def has_record(self, account: str) -> bool:
        return self.store.contains(self._key(account))

    def count(self) -> int:
        return len(self.contributors())

    def register(self, account: str) -> ContributorRecord:
        """
        Create a fresh (never initialized) record and add the account to the set.
        """
        record = ContributorRecord()
        self.store.insert(self._key(account), record.to_dict())

        members = self.contributors()
        if account not in members:
            members.append(account)
            self.store.insert(CONTRIBUTOR_SET_KEY, members)

        logger.debug(f"Registered contributor record for {account}")
        return record

    def unregister(self, account: str) -> bool:
        """Remove the account's record and its set entry."""
        removed = self.store.remove(self._key(account))

        members = self.contributors()
        if account in members:
            members.remove(account)
            self.store.insert(CONTRIBUTOR_SET_KEY, members)
            removed = True

        if removed:
            logger.debug(f"Removed contributor record for {account}")
        return removed

    # ========================================================================
    # RECORDS
    # ========================================================================

    def get_record(self, account: str) -> Optional[ContributorRecord]:
        """Stored record, exactly as persisted (may be stale)."""
        data = self.store.get(self._key(account))
        return ContributorRecord.from_dict(data) if data is not None else None

    def view(self, account: str, round_id: int) -> Optional[ContributorRecord]:
        """
        Record as seen from `round_id`, reset if stale. Nothing is written.
        """
        record = self.get_record(account)
        return record.for_round(round_id) if record is not None else None

    def save(self, account: str, record: ContributorRecord) -> None:
        self.store.insert(self._key(account), record.to_dict())

    def get_reputation(self, account: str, round_id: int) -> Optional[int]:
        record = self.view(account, round_id)
        return record.reputation if record is not None else None

    def snapshot(self, round_id: int) -> List[Tuple[str, ContributorRecord]]:
        """
        Current-round view of every contributor, in registration order.
        """
        result = []
        for account in self.contributors():
            record = self.view(account, round_id)
            if record is None:
                logger.error(f"Contributor {account} is in the set but has no record")
                continue
            result.append((account, record))
        return result

    def reputations(self, round_id: int) -> Dict[str, int]:
        return {account: record.reputation for account, record in self.snapshot(round_id)}

    def _key(self, account: str) -> str:
        return f"{CONTRIBUTOR_PREFIX}{account}"
