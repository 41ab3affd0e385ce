"""
Persistence node for the advisor workflow.

Hands the turn's allocation to the persistence target chosen by the caller
(server profile or client-local) and records whether it was saved.
"""

import logging
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from agents.advisor_state import AdvisorTurnState
from agents.nodes.portfolio import FALLBACK_NOTE
from clients.profile_persistence import ClientLocalTarget, PersistenceTarget

logger = logging.getLogger(__name__)

def persist_portfolio(state: AdvisorTurnState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Save the allocation and facts once. No retries.

    The target comes from config["configurable"]["persistence"]; without one
    the result is left to the client, as for an anonymous user.

    Returns:
        Dict with strategy_updated, plus the response with a short note
        appended when a fallback portfolio was saved
    """
    target: PersistenceTarget = (config or {}).get("configurable", {}).get("persistence") or ClientLocalTarget()
    outcome = target.save(state.strategy, state.user_info)

    updates: Dict[str, Any] = {"strategy_updated": outcome.saved}
    if not outcome.saved:
        logger.warning(f"Portfolio computed but not saved ({outcome.target}): {outcome.error}")
        return updates

    if state.strategy_source == "fallback":
        updates["response"] = f"{state.response}\n\n{FALLBACK_NOTE}".strip()
    return updates
