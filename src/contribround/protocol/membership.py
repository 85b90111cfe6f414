"""
contribround/protocol/membership.py

Role registry: which accounts are administrators and which are contributors.

Rules:
- Only administrators add or remove members.
- An account holds at most one role.
- An administrator cannot remove itself.
- Contributor membership is frozen while a round is active, so the set of
  accounts that vote and get paid is stable for the whole round.
- Contributor role and contributor record always go together: adding the
  role creates the record, removing the role deletes it.
"""

import logging
from typing import Callable, List, Optional

from ..errors import (
    AdministrativeFunction,
    CannotRemoveYourself,
    IsAnActiveRound,
    MemberAlreadyExists,
    MemberNotExist,
)
from ..events import EventBus, member_added, member_removed
from .reputation import ReputationLedger
from .storage import StateStore, MEMBER_PREFIX
from .types import Role

logger = logging.getLogger("contribround.protocol.membership")


class MembershipRegistry:
    """
    Account → role mapping.

    Args:
        store: State store holding the role entries
        reputation: Ledger that owns contributor records
        active_round: Returns the id of the unfinished round, or None
        events: Optional event sink
    """

    def __init__(
        self,
        store: StateStore,
        reputation: ReputationLedger,
        active_round: Callable[[], Optional[int]],
        events: Optional[EventBus] = None,
    ):
        self.store = store
        self.reputation = reputation
        self.active_round = active_round
        self.events = events

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_role(self, account: str) -> Optional[Role]:
        value = self.store.get(self._key(account))
        return Role(value) if value is not None else None

    def is_admin(self, account: str) -> bool:
        return self.get_role(account) == Role.ADMIN

    def is_contributor(self, account: str) -> bool:
        return self.get_role(account) == Role.CONTRIBUTOR

    def is_member(self, account: str) -> bool:
        return self.get_role(account) is not None

    def admins(self) -> List[str]:
        return self._members_with(Role.ADMIN)

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise AdministrativeFunction(caller)

    # ========================================================================
    # ADMINISTRATORS
    # ========================================================================

    def bootstrap_admin(self, account: str) -> bool:
        """
        Make `account` an administrator without an admin caller.

        Only allowed while no administrator exists (initial deployment).

        Returns:
            True if the account was assigned the Admin role
        """
        if self.admins():
            return False
        self.store.insert(self._key(account), Role.ADMIN.value)
        logger.info(f"Bootstrapped administrator {account}")
        return True

    def add_admin(self, caller: str, target: str) -> None:
        self.require_admin(caller)
        if self.is_member(target):
            raise MemberAlreadyExists(target)

        self.store.insert(self._key(target), Role.ADMIN.value)
        logger.info(f"{caller} added administrator {target}")
        self._emit(member_added(target, Role.ADMIN.value, caller))

    def remove_admin(self, caller: str, target: str) -> None:
        self.require_admin(caller)
        if not self.is_admin(target):
            raise MemberNotExist(target)
        if caller == target:
            raise CannotRemoveYourself(caller)

        self.store.remove(self._key(target))
        logger.info(f"{caller} removed administrator {target}")
        self._emit(member_removed(target, Role.ADMIN.value, caller))

    # ========================================================================
    # CONTRIBUTORS
    # ========================================================================

    def add_contributor(self, caller: str, target: str) -> None:
        self.require_admin(caller)
        self._require_no_active_round()
        if self.is_member(target):
            raise MemberAlreadyExists(target)

        self.store.insert(self._key(target), Role.CONTRIBUTOR.value)
        self.reputation.register(target)
        logger.info(f"{caller} added contributor {target}")
        self._emit(member_added(target, Role.CONTRIBUTOR.value, caller))

    def remove_contributor(self, caller: str, target: str) -> None:
        self.require_admin(caller)
        self._require_no_active_round()
        if not self.is_contributor(target):
            raise MemberNotExist(target)

        self.store.remove(self._key(target))
        self.reputation.unregister(target)
        logger.info(f"{caller} removed contributor {target}")
        self._emit(member_removed(target, Role.CONTRIBUTOR.value, caller))

    # ========================================================================
    # INTERNAL
    # ========================================================================

    def _require_no_active_round(self) -> None:
        round_id = self.active_round()
        if round_id is not None:
            raise IsAnActiveRound(round_id)

    def _members_with(self, role: Role) -> List[str]:
        result = []
        for key in self.store.keys(MEMBER_PREFIX):
            if self.store.get(key) == role.value:
                result.append(key[len(MEMBER_PREFIX):])
        return result

    def _emit(self, event) -> None:
        if self.events is not None:
            self.events.emit(event)

    def _key(self, account: str) -> str:
        return f"{MEMBER_PREFIX}{account}"
