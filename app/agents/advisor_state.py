"""
Investment advisor state management.

Defines the data carried through one advisor turn:
- ConversationTurn: a single chat message supplied by the client
- AllocationItem: one category/percentage/description entry of a portfolio
- AdvisorContext: what the client already knows (strategy + profile facts)
- AdvisorTurnState: the LangGraph state passed between workflow nodes

Nothing here is held server-side between requests. The client sends the
context and trailing history every turn and receives the updated values back.
"""

from typing import List, Optional, Dict, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, field_serializer

# Keys of the user profile facts mapping. Values are always strings.
AGE = "age"
LIFE_STAGE = "lifeStage"
RISK_TOLERANCE = "riskTolerance"
TIMELINE = "timeline"
GOAL = "goal"
INCOME = "income"

UserProfileFacts = Dict[str, Any]


class ConversationTurn(BaseModel):
    """One immutable chat message."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class AllocationItem(BaseModel):
    """One slice of a recommended portfolio."""
    category: str
    percentage: float = Field(..., ge=0, allow_inf_nan=False)
    description: str = ""

    @field_serializer("percentage")
    def _whole_percentage(self, value: float) -> Union[int, float]:
        # Clients expect 45, not 45.0
        return int(value) if float(value).is_integer() else value


Allocation = List[AllocationItem]


class AdvisorContext(BaseModel):
    """Caller-supplied knowledge for the current turn."""
    model_config = ConfigDict(populate_by_name=True)

    has_strategy: bool = Field(False, alias="hasStrategy")
    current_strategy: Allocation = Field(default_factory=list, alias="currentStrategy")
    user_info: UserProfileFacts = Field(default_factory=dict, alias="userInfo")


class AdvisorTurnState(BaseModel):
    """
    State container for the advisor workflow.

    Attributes:
        # Request
        message: The new user message
        history: Trailing conversation window supplied by the client
        caller_context: Strategy and facts the client already holds
        user_id: Authenticated user id, None for anonymous users

        # Derived during the turn
        user_info: Working copy of the facts, enriched by extraction
        ready_for_portfolio: Whether this turn must produce an allocation
        reply: Raw completion-service text
        response: User-visible reply (payload stripped)
        strategy: Allocation produced this turn, if any
        strategy_source: "model" or "fallback"
        strategy_updated: Whether the allocation was saved (or handed to the client)
    """

    # Request
    message: str = ""
    history: List[ConversationTurn] = Field(default_factory=list)
    caller_context: AdvisorContext = Field(default_factory=AdvisorContext)
    user_id: Optional[str] = None

    # Derived during the turn
    user_info: UserProfileFacts = Field(default_factory=dict)
    ready_for_portfolio: bool = False
    reply: str = ""
    response: str = ""
    strategy: Optional[Allocation] = None
    strategy_source: Optional[Literal["model", "fallback"]] = None
    strategy_updated: bool = False

    def to_response(self) -> Dict[str, Any]:
        """Wire payload returned to the client for this turn."""
        return {
            "response": self.response,
            "strategyUpdated": self.strategy_updated,
            "strategy": [item.model_dump() for item in self.strategy] if self.strategy is not None else None,
            "userInfo": dict(self.user_info) if self.strategy is not None else None,
        }
