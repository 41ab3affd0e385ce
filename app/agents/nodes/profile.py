"""
Profile node for the advisor workflow.

Merges facts found in the user's messages into a working copy of the
caller's userInfo and decides whether this turn must produce a portfolio.
"""

import logging
from typing import Dict, Any

from agents.advisor_state import AdvisorTurnState
from agents.profile_extractor import collect_user_text, extract_profile_facts, is_ready_for_portfolio

logger = logging.getLogger(__name__)

def extract_profile(state: AdvisorTurnState) -> Dict[str, Any]:
    """
    Extract profile facts from every user utterance of the session.

    Args:
        state: Agent state with message, history and caller context

    Returns:
        Dict with the enriched user_info and the ready_for_portfolio flag
    """
    user_text = collect_user_text(state.history, state.message)
    # Work on a copy: nothing the caller sent is changed unless the turn succeeds
    facts = extract_profile_facts(user_text, dict(state.caller_context.user_info))
    ready = is_ready_for_portfolio(facts, state.caller_context.has_strategy)

    logger.info(f"Profile facts: {facts} (ready_for_portfolio={ready})")
    return {"user_info": facts, "ready_for_portfolio": ready}
