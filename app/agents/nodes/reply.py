"""
Reply generation module for the investment advisor.

Contains:
- The advisor persona and portfolio format contract (ADVISOR_SYSTEM_PROMPT)
- Building the context message from the caller's strategy and known facts
- The single completion-service call of each turn
"""

import logging
from typing import Dict, Any, List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_core.runnables import RunnableConfig

from agents.advisor_state import AdvisorTurnState, Allocation, UserProfileFacts
from config import config
from utils.llm import get_advisor_llm
from utils.portfolio_payload import PORTFOLIO_MARKER

logger = logging.getLogger(__name__)

ADVISOR_SYSTEM_PROMPT = f"""You are a professional investment advisor AI with expertise in portfolio management. Your role:

COMMUNICATION STYLE:
- Be CONCISE and ACTIONABLE - keep responses 2-4 sentences unless explaining complex strategy
- Ask ONE specific question at a time when gathering info
- Use a friendly, confident tone like a trusted advisor
- Reference the user's current portfolio naturally in conversation
- Acknowledge user concerns and preferences

INFORMATION GATHERING (Ask in order):
1. Age or life stage (20s, 40s, retirement)
2. Risk tolerance (conservative, moderate, aggressive)
3. Investment timeline (short <5yrs, medium 5-10yrs, long >10yrs)
4. Primary goal (growth, income, preservation, retirement)
5. Income level or investable amount (optional but helpful)

Once you have 3-4 key pieces of info, suggest a portfolio.

PORTFOLIO STRATEGY GUIDELINES:

**Aggressive (High Risk, High Growth)**
- Ages 20-35, long timeline, growth-focused
- 80-90% stocks, 10-20% bonds/alternatives

**Moderate (Balanced)**
- Ages 35-55, medium timeline, balanced goals
- 60-70% stocks, 30-40% bonds/stable

**Conservative (Low Risk, Preservation)**
- Ages 55+, short timeline, income/preservation
- 30-50% stocks, 50-70% bonds/stable

PORTFOLIO CATEGORIES (use relevant ones):
- US Large Cap Stocks (S&P 500 index funds)
- International Stocks (Developed & emerging markets)
- Small Cap Stocks (Higher growth potential)
- Government Bonds (Treasury, municipal)
- Corporate Bonds (Investment grade)
- Real Estate (REITs for diversification)
- Commodities (Gold, inflation hedge)
- Cash/Money Market (Emergency fund, liquidity)

PORTFOLIO UPDATE FORMAT:
CRITICAL: When creating or updating a portfolio, you MUST include this EXACT format in your response:

{PORTFOLIO_MARKER}
[{{"category": "US Large Cap Stocks", "percentage": 40, "description": "S&P 500 index funds for core growth"}},
{{"category": "International Stocks", "percentage": 20, "description": "Exposure to developed & emerging markets"}},
{{"category": "Bonds", "percentage": 20, "description": "Government bonds for stability"}}]

You can write text before and after, but the {PORTFOLIO_MARKER} tag followed by the JSON array is MANDATORY.
The percentages MUST add up to approximately 100.

CONTEXT AWARENESS:
- Always acknowledge the current portfolio state
- When suggesting changes, explain WHY (e.g., "Since you're 28 and have a long timeline, we can be more aggressive")
- If user asks to adjust, make smart incremental changes
- Validate that suggestions align with their stated risk tolerance

REBALANCING:
- Suggest rebalancing if allocation drifts >5% from targets
- Recommend annual reviews
- Consider tax implications

Be conversational, not robotic. Think like a human financial advisor who cares about the client's success."""

READY_INSTRUCTION = (
    "\n\nIMPORTANT: The user has provided enough information. You MUST now generate a "
    f"portfolio allocation using the {PORTFOLIO_MARKER} format in your response."
)

# Instructions travel as variables so the JSON braces above are never parsed as fields
ADVISOR_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "{system_prompt}"),
    ("system", "{context_message}"),
    MessagesPlaceholder("history"),
    ("human", "{message}"),
])


def build_context_message(
    has_strategy: bool,
    current_strategy: Optional[Allocation],
    facts: UserProfileFacts,
    ready_for_portfolio: bool,
) -> str:
    """
    Summarize what is already known for the model.

    Example:
        "Current portfolio: Bonds: 60%, US Large Cap Stocks: 40%. Known user info: age: 28."
    """
    if has_strategy and current_strategy:
        allocations = ", ".join(f"{item.category}: {item.percentage:g}%" for item in current_strategy)
        message = f"Current portfolio: {allocations}. "
    else:
        message = "User has no portfolio yet. "

    if facts:
        info = ", ".join(f"{key}: {value}" for key, value in facts.items())
        message += f"Known user info: {info}."
    else:
        message += "Need to gather user information for personalized advice."

    if ready_for_portfolio:
        message += READY_INSTRUCTION
    return message


def _history_messages(state: AdvisorTurnState) -> List[Tuple[str, str]]:
    window = state.history[-config.ADVISOR_HISTORY_WINDOW:] if config.ADVISOR_HISTORY_WINDOW > 0 else []
    return [(turn.role, turn.content) for turn in window]


def _resolve_llm(run_config: Optional[RunnableConfig]) -> BaseChatModel:
    configurable = (run_config or {}).get("configurable", {})
    return configurable.get("llm") or get_advisor_llm()


def generate_reply(state: AdvisorTurnState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Ask the completion service for the advisor's reply.

    The model is taken from config["configurable"]["llm"] when present so
    callers and tests can swap it; otherwise the configured Gemini model is used.
    Errors are not caught here: a failed completion fails the whole turn.

    Returns:
        Dict with the raw reply text
    """
    context_message = build_context_message(
        state.caller_context.has_strategy,
        state.caller_context.current_strategy,
        state.user_info,
        state.ready_for_portfolio,
    )

    chain = ADVISOR_PROMPT | _resolve_llm(config) | StrOutputParser()
    reply = chain.invoke({
        "system_prompt": ADVISOR_SYSTEM_PROMPT,
        "context_message": context_message,
        "history": _history_messages(state),
        "message": state.message,
    })

    logger.debug(f"Advisor model reply: {reply}")
    return {"reply": reply}
