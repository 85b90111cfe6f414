"""
contribround/errors.py

Typed failures of the contribution-round engine.

Every rejected operation raises a subclass of ContribRoundError. Each class
carries the data of the violated rule as attributes, and a `category` used by
the REST API to pick a status code:

    authorization - caller lacks the role the operation needs
    state         - operation conflicts with current membership/round state
    validation    - input is outside the allowed limits
    resource      - funds or arithmetic range exhausted
    collaborator  - an external collaborator (minter) failed

Collaborator-level exceptions (TransferError, MintError, StorageError) are
raised by the treasury, the token minter and the storage backends; the engine
translates transfer and mint failures into TransferFailed and NftNotSent.
"""

from typing import Any, Dict, Optional


class ContribRoundError(Exception):
    """Base class for all engine errors."""
    category = "engine"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)

    @property
    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "category": self.category,
            "message": str(self),
            "details": self.details,
        }


# ============================================================================
# AUTHORIZATION
# ============================================================================

class AuthorizationError(ContribRoundError):
    category = "authorization"


class AdministrativeFunction(AuthorizationError):
    """Operation requires the Admin role."""

    def __init__(self, caller: str):
        self.caller = caller
        super().__init__(f"{caller} is not an administrator")

    @property
    def details(self) -> Dict[str, Any]:
        return {"caller": self.caller}


class OnlyContributorCanVote(AuthorizationError):
    """Voter or receiver does not hold the Contributor role."""

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} is not a contributor")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


class CannotRemoveYourself(AuthorizationError):
    """An administrator tried to remove their own role."""

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} cannot remove itself")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


# ============================================================================
# STATE CONFLICTS
# ============================================================================

class StateError(ContribRoundError):
    category = "state"


class MemberAlreadyExists(StateError):
    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} already has a role")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


class MemberNotExist(StateError):
    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} does not hold the required role")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


class CannotVoteItself(StateError):
    def __init__(self, account: str):
        self.account = account
        super().__init__(f"{account} cannot vote for itself")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


class IsAnActiveRound(StateError):
    """An unfinished round exists."""

    def __init__(self, round_id: int):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is still active")

    @property
    def details(self) -> Dict[str, Any]:
        return {"round_id": self.round_id}


class IsNoActiveRound(StateError):
    """No round is open (or its voting window has passed)."""

    def __init__(self, round_id: int = 0):
        self.round_id = round_id
        super().__init__("There is no active round")

    @property
    def details(self) -> Dict[str, Any]:
        return {"round_id": self.round_id}


class NotYetFinishedRound(StateError):
    def __init__(self, finish_at: int, now: int):
        self.finish_at = finish_at
        self.now = now
        super().__init__(f"Round finishes at {finish_at}, current time is {now}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"finish_at": self.finish_at, "now": self.now}


# ============================================================================
# INPUT VALIDATION
# ============================================================================

class ValidationError(ContribRoundError):
    category = "validation"


class InvalidRoundParameter(ValidationError):
    def __init__(self, parameter: str, reason: str):
        self.parameter = parameter
        self.reason = reason
        super().__init__(f"Invalid round parameter '{parameter}': {reason}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"parameter": self.parameter, "reason": self.reason}


class InvalidVote(ValidationError):
    """Vote payload is malformed (negative or non-integer value)."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid vote: {reason}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason}


class ExceedsVoteLimit(ValidationError):
    """A single vote is larger than the round's max_votes."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Vote value exceeds the round limit of {limit}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"limit": self.limit}


class ExceedsYourVoteLimit(ValidationError):
    """The caller's remaining quota for this round is too small."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Vote value exceeds your remaining quota of {remaining}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"remaining": self.remaining}


# ============================================================================
# RESOURCE / ARITHMETIC
# ============================================================================

class ResourceError(ContribRoundError):
    category = "resource"


class InsufficientFunds(ResourceError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: required {required}, available {available}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"required": self.required, "available": self.available}


class ShareOverflow(ResourceError):
    """value * reputation left the balance domain."""

    def __init__(self, value: int, reputation: int):
        self.value = value
        self.reputation = reputation
        super().__init__(f"Overflow computing share: {value} * {reputation}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"value": self.value, "reputation": self.reputation}


class TransferFailed(ResourceError):
    def __init__(self, account: str, amount: int):
        self.account = account
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {account} failed")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account, "amount": self.amount}


# ============================================================================
# COLLABORATOR FAILURE
# ============================================================================

class CollaboratorError(ContribRoundError):
    category = "collaborator"


class NftNotSent(CollaboratorError):
    """The token minter rejected a proof-of-contribution mint."""

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"Proof-of-contribution token not sent to {account}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"account": self.account}


# ============================================================================
# COLLABORATOR-LEVEL EXCEPTIONS
# ============================================================================

class TransferError(Exception):
    """Raised by a TransferLedger when a transfer cannot be made."""
    pass


class MintError(Exception):
    """Raised by a TokenMinter when a token cannot be minted."""
    pass


class StorageError(Exception):
    """Raised by a storage backend when a read or write fails."""
    pass
