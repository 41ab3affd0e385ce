"""
Profile fact extractor for the investment advisor.

Scans everything the user has said in the session for the facts the advisor
needs before it can suggest a portfolio:
- age or life stage (mutually exclusive)
- risk tolerance
- income
- investment timeline
- primary goal

Extraction is an ordered table of rules. Each rule names the field it fills,
when it is allowed to run, and how it pulls a value out of the text. Rules run
in table order against the same lowercase text, and a field that already has a
value is never touched again, so running the extractor twice is a no-op.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Tuple

from agents.advisor_state import (
    AGE, GOAL, INCOME, LIFE_STAGE, RISK_TOLERANCE, TIMELINE,
    ConversationTurn, UserProfileFacts,
)


@dataclass(frozen=True)
class ProfileRule:
    """A single extraction rule: fills `field` when `applies` and `extract` agree."""
    field: str
    applies: Callable[[UserProfileFacts], bool]
    extract: Callable[[str], Optional[str]]


def _unset(*fields: str) -> Callable[[UserProfileFacts], bool]:
    return lambda facts: not any(facts.get(f) for f in fields)


def _first_keyword_group(groups: Sequence[Tuple[str, Pattern[str]]]) -> Callable[[str], Optional[str]]:
    """Return the label of the first group whose pattern matches."""
    def extract(text: str) -> Optional[str]:
        for label, pattern in groups:
            if pattern.search(text):
                return label
        return None
    return extract


# ---------- AGE ----------
_AGE_PATTERNS = (
    re.compile(r"\b(\d{2})\s*(?:years old|year old|yrs old|yo|age)\b"),
    re.compile(r"(?:i'm|im|i am)\s*(\d{2})\b"),
)

def extract_age(text: str) -> Optional[str]:
    for pattern in _AGE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


# ---------- LIFE STAGE ----------
LIFE_STAGE_GROUPS = (
    ("20s", re.compile(r"\b(?:20s|twenties)\b")),
    ("30s", re.compile(r"\b(?:30s|thirties)\b")),
    ("40s", re.compile(r"\b(?:40s|forties)\b")),
    ("50s", re.compile(r"\b(?:50s|fifties)\b")),
    ("Retirement", re.compile(r"\b(?:retire|retirement|retired)\b")),
)

# ---------- RISK TOLERANCE ----------
RISK_GROUPS = (
    ("Aggressive", re.compile(r"\b(?:aggressive|high risk|very risky|maximum growth)\b")),
    ("Moderate", re.compile(r"\b(?:moderate|balanced|medium risk|somewhat risky)\b")),
    ("Conservative", re.compile(r"\b(?:conservative|low risk|safe|cautious|avoid risk)\b")),
)

# ---------- INCOME ----------
_INCOME_PATTERNS = (
    re.compile(r"\$(\d+)k?\s*(?:a |per |/)?(?:income|salary|earn|make|year|annual)"),
    re.compile(r"(?:income|salary|earn|make)\s*(?:is|of)?\s*\$?(\d+)k"),
)

def extract_income(text: str) -> Optional[str]:
    for pattern in _INCOME_PATTERNS:
        match = pattern.search(text)
        if match:
            amount = match.group(1)
            # Short figures are thousands ("$85k"), long ones are dollars ("$85000")
            return f"${amount}" if len(amount) > 3 else f"${amount}k"
    return None


# ---------- TIMELINE ----------
_YEARS_PATTERN = re.compile(r"(\d+)\s*(?:years?|yrs?)\b(?!\s*old)")
_SHORT_PATTERN = re.compile(r"\b(?:short|near|soon)\b")
_LONG_PATTERN = re.compile(r"\b(?:long|decades|retirement)\b")

def timeline_for_years(years: int) -> str:
    if years < 5:
        return "Short-term (<5 years)"
    if years <= 10:
        return f"Medium-term ({years} years)"
    return f"Long-term ({years}+ years)"

def extract_timeline(text: str) -> Optional[str]:
    match = _YEARS_PATTERN.search(text)
    if match:
        return timeline_for_years(int(match.group(1)))
    if _SHORT_PATTERN.search(text):
        return "Short-term"
    if _LONG_PATTERN.search(text):
        return "Long-term"
    return None


# ---------- GOAL ----------
GOAL_GROUPS = (
    ("Wealth Accumulation", re.compile(r"\b(?:wealth accumulation|accumulation|build wealth)\b")),
    ("Growth", re.compile(r"\b(?:growth|grow|increase|maximize)\b")),
    ("Income", re.compile(r"\b(?:income|dividend|cash flow)\b")),
    ("Preservation", re.compile(r"\b(?:preserve|preservation|protect|safe)\b")),
    ("Retirement", re.compile(r"\b(?:retire|retirement)\b")),
)


# Order matters: age must run before life stage so the two stay exclusive.
PROFILE_RULES: Tuple[ProfileRule, ...] = (
    ProfileRule(AGE, _unset(AGE, LIFE_STAGE), extract_age),
    ProfileRule(LIFE_STAGE, _unset(AGE, LIFE_STAGE), _first_keyword_group(LIFE_STAGE_GROUPS)),
    ProfileRule(RISK_TOLERANCE, _unset(RISK_TOLERANCE), _first_keyword_group(RISK_GROUPS)),
    ProfileRule(INCOME, _unset(INCOME), extract_income),
    ProfileRule(TIMELINE, _unset(TIMELINE), extract_timeline),
    ProfileRule(GOAL, _unset(GOAL), _first_keyword_group(GOAL_GROUPS)),
)


def collect_user_text(history: Iterable[ConversationTurn], message: str) -> str:
    """Join every user utterance of the session into one lowercase blob."""
    user_messages: List[str] = [turn.content.lower() for turn in history if turn.role == "user"]
    return " ".join(user_messages + [message.lower()])


def extract_profile_facts(
    text: str,
    facts: UserProfileFacts,
    rules: Sequence[ProfileRule] = PROFILE_RULES,
) -> UserProfileFacts:
    """
    Add whatever facts can be found in `text` to `facts`.

    Args:
        text: Lowercase user text (see collect_user_text)
        facts: Known facts; mutated in place, existing values are kept

    Returns:
        The same `facts` mapping, for chaining

    Example:
        extract_profile_facts("i'm 28 and want aggressive growth", {})
        # {"age": "28", "riskTolerance": "Aggressive", "goal": "Growth"}
    """
    for rule in rules:
        if not rule.applies(facts):
            continue
        value = rule.extract(text)
        if value is not None:
            facts[rule.field] = value
    return facts


def is_ready_for_portfolio(facts: UserProfileFacts, has_strategy: bool) -> bool:
    """Enough is known to insist on a portfolio this turn."""
    return bool(
        (facts.get(AGE) or facts.get(LIFE_STAGE))
        and facts.get(RISK_TOLERANCE)
        and not has_strategy
    )
