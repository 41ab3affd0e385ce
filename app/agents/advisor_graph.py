"""
Investment advisor workflow graph using LangGraph.

Defines the workflow for one advisor chat turn:
1. Extract profile facts from the user's messages (age, risk, goal...)
2. Ask the completion service for a reply, demanding a portfolio when ready
3. Parse and normalize any portfolio embedded in the reply
4. Fall back to a rule-based portfolio if one was required but not given
5. Persist the portfolio (server profile or client-local)

The graph holds no state between turns: every request carries its own
context and history, and the model plus persistence target are supplied per
call through config["configurable"].
"""

import logging
from typing import Any, Dict, List, Optional

from langgraph.graph import StateGraph, END

from agents.advisor_state import AdvisorContext, AdvisorTurnState, ConversationTurn
from agents.nodes.persistence import persist_portfolio
from agents.nodes.portfolio import fallback_portfolio, parse_portfolio
from agents.nodes.profile import extract_profile
from agents.nodes.reply import generate_reply
from clients.profile_persistence import PersistenceTarget

logger = logging.getLogger(__name__)

def create_advisor_graph():
    """
    Create and configure the advisor workflow graph.

    Returns:
        Compiled LangGraph workflow ready for execution

    Workflow Steps:
        1. extract_profile: Merge extracted facts, evaluate readiness
        2. generate_reply: Single completion-service call
        3. parse_portfolio: Strip and decode the embedded allocation
        4. fallback_portfolio (conditional): Rule-based allocation
        5. persist_portfolio (conditional): Save wherever the caller chose
    """
    workflow = StateGraph(AdvisorTurnState)

    workflow.add_node("extract_profile", extract_profile)
    workflow.add_node("generate_reply", generate_reply)
    workflow.add_node("parse_portfolio", parse_portfolio)
    workflow.add_node("fallback_portfolio", fallback_portfolio)
    workflow.add_node("persist_portfolio", persist_portfolio)

    # === ROUTING LOGIC ===

    def route_after_parse(state: AdvisorTurnState) -> str:
        """Model portfolio → persist; missing but required → fallback; else done."""
        if state.strategy is not None:
            return "persist_portfolio"
        elif state.ready_for_portfolio:
            return "fallback_portfolio"
        else:
            return END

    # === WORKFLOW EDGES ===

    workflow.set_entry_point("extract_profile")
    workflow.add_edge("extract_profile", "generate_reply")
    workflow.add_edge("generate_reply", "parse_portfolio")

    workflow.add_conditional_edges(
        "parse_portfolio",
        route_after_parse,
        {
            "persist_portfolio": "persist_portfolio",
            "fallback_portfolio": "fallback_portfolio",
            END: END,
        }
    )

    workflow.add_edge("fallback_portfolio", "persist_portfolio")
    workflow.add_edge("persist_portfolio", END)

    return workflow.compile()


# Create the global workflow instance
advisor_graph = create_advisor_graph()


def build_turn_state(
    message: str,
    context: Optional[AdvisorContext] = None,
    user_id: Optional[str] = None,
    history: Optional[List[ConversationTurn]] = None,
) -> AdvisorTurnState:
    """Initial graph state for one request."""
    return AdvisorTurnState(
        message=message,
        caller_context=context or AdvisorContext(),
        user_id=user_id,
        history=history or [],
    )


def turn_config(llm: Any = None, persistence: Optional[PersistenceTarget] = None) -> Dict[str, Any]:
    """RunnableConfig carrying the per-request collaborators."""
    return {"configurable": {"llm": llm, "persistence": persistence}}


def run_advisor_turn(
    state: AdvisorTurnState,
    llm: Any = None,
    persistence: Optional[PersistenceTarget] = None,
) -> AdvisorTurnState:
    """
    Run one advisor turn to completion.

    Args:
        state: Initial state (see build_turn_state)
        llm: Chat model or runnable used as the completion service
        persistence: Where to save a produced allocation

    Returns:
        Final AdvisorTurnState; call to_response() for the wire payload

    Raises:
        Whatever the completion service raises. Parse and persistence
        failures never propagate.
    """
    result = advisor_graph.invoke(state, config=turn_config(llm, persistence))
    final_state = AdvisorTurnState.model_validate(result)
    logger.info(
        f"Advisor turn done: strategy_source={final_state.strategy_source}, "
        f"strategy_updated={final_state.strategy_updated}"
    )
    return final_state
