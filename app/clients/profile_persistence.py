"""
Where an advisor turn's allocation gets saved.

Two targets exist:
- ServerProfileTarget: authenticated users, one update of their profile row
- ClientLocalTarget: anonymous users, nothing is written here and the client
  keeps its own copy (local storage)

Both expose save(allocation, facts) -> PersistOutcome and never raise, so the
workflow only has to look at the outcome.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Protocol

from agents.advisor_state import Allocation, UserProfileFacts
from clients.supabase_client import STRATEGY_COLUMN, USER_INFO_COLUMN, UserStore, UserStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistOutcome:
    saved: bool
    target: Literal["server", "client"]
    error: Optional[str] = None


class PersistenceTarget(Protocol):
    def save(self, allocation: Allocation, facts: UserProfileFacts) -> PersistOutcome:
        ...


class ServerProfileTarget:
    """Writes the allocation and facts onto the user's profile record."""

    def __init__(self, store: Optional[UserStore], user_id: str):
        self.store = store
        self.user_id = user_id

    def save(self, allocation: Allocation, facts: UserProfileFacts) -> PersistOutcome:
        if self.store is None:
            logger.error(f"No user store configured, cannot save portfolio for {self.user_id}")
            return PersistOutcome(saved=False, target="server", error="user store not configured")

        fields = {
            STRATEGY_COLUMN: [item.model_dump() for item in allocation],
            USER_INFO_COLUMN: dict(facts),
        }
        try:
            self.store.update_by_id(self.user_id, fields)
        except UserStoreError as e:
            logger.error(f"Failed to save portfolio for {self.user_id}: {e}", exc_info=True)
            return PersistOutcome(saved=False, target="server", error=str(e))

        logger.info(f"Portfolio saved for user {self.user_id}")
        return PersistOutcome(saved=True, target="server")


class ClientLocalTarget:
    """Anonymous users: report success so the client stores the result itself."""

    def save(self, allocation: Allocation, facts: UserProfileFacts) -> PersistOutcome:
        logger.debug("Anonymous user - portfolio left for client-side storage")
        return PersistOutcome(saved=True, target="client")


def persistence_target_for(user_id: Optional[str], store: Optional[UserStore]) -> PersistenceTarget:
    """Server record for signed-in users, client-local storage otherwise."""
    if user_id:
        return ServerProfileTarget(store, user_id)
    return ClientLocalTarget()
