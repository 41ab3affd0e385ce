"""
Portfolio nodes for the advisor workflow.

- parse_portfolio: take the model's embedded allocation (if any) out of the
  reply and normalize it
- fallback_portfolio: build a rule-based allocation when the model was told
  to produce one and did not
"""

import logging
from typing import Dict, Any

from agents.advisor_state import AdvisorTurnState
from utils.allocation import generate_default_allocation, normalize_allocation
from utils.portfolio_payload import extract_portfolio_payload

logger = logging.getLogger(__name__)

MIN_RESPONSE_LENGTH = 10

PORTFOLIO_CONFIRMATION = (
    "I've created your personalized portfolio allocation based on our conversation. "
    "Take a look at the chart - let me know if you'd like to adjust anything!"
)

FALLBACK_NOTE = (
    "I've created a personalized portfolio for you based on your profile. "
    "Check out the chart on the left!"
)

def parse_portfolio(state: AdvisorTurnState) -> Dict[str, Any]:
    """
    Extract and normalize the allocation embedded in the model reply.

    The marker and JSON array are always removed from the user-visible text.
    A payload that fails to parse (or sums to zero) leaves strategy unset so
    the fallback can take over.

    Returns:
        Dict with response, and strategy/strategy_source when a payload was found
    """
    scan = extract_portfolio_payload(state.reply)
    response = scan.strip_from(state.reply)

    if not scan.found:
        if scan.span is not None:
            logger.warning("Model emitted the portfolio marker but the payload could not be parsed")
        return {"response": response}

    if sum(item.percentage for item in scan.items) <= 0:
        logger.warning("Model portfolio percentages sum to zero, ignoring it")
        return {"response": response}

    strategy = normalize_allocation(scan.items)
    logger.info(f"Normalized model portfolio: {[item.model_dump() for item in strategy]}")

    if len(response) < MIN_RESPONSE_LENGTH:
        response = PORTFOLIO_CONFIRMATION

    return {"response": response, "strategy": strategy, "strategy_source": "model"}


def fallback_portfolio(state: AdvisorTurnState) -> Dict[str, Any]:
    """
    Generate the rule-based allocation for the current profile facts.

    Only routed to when the turn was ready for a portfolio and the model
    did not supply a usable one.
    """
    logger.info(f"Model did not generate a portfolio, using fallback for {state.user_info}")
    strategy = generate_default_allocation(state.user_info)
    return {"strategy": strategy, "strategy_source": "fallback"}
