import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from config import config

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

from agents.advisor_graph import advisor_graph, build_turn_state, run_advisor_turn, turn_config
from agents.advisor_state import AdvisorContext, AdvisorTurnState, Allocation, ConversationTurn, UserProfileFacts
from clients.profile_persistence import PersistenceTarget, persistence_target_for
from clients.supabase_client import STRATEGY_COLUMN, USER_INFO_COLUMN, UserStore, UserStoreError, get_user_store
from utils.llm import get_advisor_llm

# Initialize FastAPI app
app = FastAPI(
    title="Portfolio Advisor API",
    description="LangGraph-powered conversational investment advisor",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

GENERIC_ERROR = "Failed to process request"

if not config.has_user_store():
    logger.warning("SUPABASE_URL / SUPABASE_ANON_KEY not set - profile persistence disabled")

# Request models
class InvestmentChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    context: AdvisorContext = Field(default_factory=AdvisorContext)
    user_id: Optional[str] = Field(None, alias="userId")
    conversation_history: List[ConversationTurn] = Field(default_factory=list, alias="conversationHistory")


class UpdateStrategyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    strategy: Allocation = Field(default_factory=list)
    user_info: UserProfileFacts = Field(default_factory=dict, alias="userInfo")


# Dependencies (overridden in tests)
def get_completion_llm():
    return get_advisor_llm()


StoreOpener = Callable[[], Optional[UserStore]]


def get_store_opener(authorization: Optional[str] = Header(None)) -> StoreOpener:
    """Defer building the Supabase client until a request actually needs it."""
    return lambda: get_user_store(authorization)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Missing required fields"})


def _initial_state(request: InvestmentChatRequest) -> AdvisorTurnState:
    return build_turn_state(
        message=request.message,
        context=request.context,
        user_id=request.user_id,
        history=request.conversation_history,
    )


def _persistence_for(request: InvestmentChatRequest, open_store: StoreOpener) -> PersistenceTarget:
    # Anonymous turns are kept client-side, so no store is opened for them
    store = open_store() if request.user_id else None
    return persistence_target_for(request.user_id, store)


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Portfolio Advisor is running!",
        "docs": "/docs"
    }


@app.post("/investment-chat")
def investment_chat(
    request: InvestmentChatRequest,
    llm=Depends(get_completion_llm),
    open_store: StoreOpener = Depends(get_store_opener),
):
    """One advisor turn: reply text plus the (possibly new) portfolio."""
    logger.info(f"Investment chat turn for user={request.user_id or 'anonymous'}")
    try:
        persistence = _persistence_for(request, open_store)
        final_state = run_advisor_turn(_initial_state(request), llm=llm, persistence=persistence)
    except Exception as e:
        logger.error(f"Investment chat error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    return final_state.to_response()


STATUS_STEPS = {
    "extract_profile": "extracting_profile",
    "generate_reply": "generating_reply",
    "parse_portfolio": "parsing_portfolio",
    "fallback_portfolio": "building_fallback_portfolio",
    "persist_portfolio": "saving_portfolio",
}


@app.post("/investment-chat-stream")
def investment_chat_stream(
    request: InvestmentChatRequest,
    llm=Depends(get_completion_llm),
    open_store: StoreOpener = Depends(get_store_opener),
):
    """Same turn as /investment-chat, reported node by node as server-sent events."""
    inputs = _initial_state(request)

    def event_stream():
        try:
            persistence = _persistence_for(request, open_store)
            current_state: Dict[str, Any] = inputs.model_dump()

            for step_output in advisor_graph.stream(inputs, config=turn_config(llm, persistence)):
                for node_name, updates in step_output.items():
                    current_state.update(updates or {})
                    step = STATUS_STEPS.get(node_name)
                    if step:
                        yield f'data: {json.dumps({"type": "status", "step": step})}\n\n'

            payload = AdvisorTurnState.model_validate(current_state).to_response()
            yield f'data: {json.dumps({"type": "done", **payload})}\n\n'

        except Exception as e:
            logger.error(f"Investment chat stream error: {e}", exc_info=True)
            yield f'data: {json.dumps({"type": "error", "message": GENERIC_ERROR})}\n\n'

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.post("/update-investment-strategy")
def update_investment_strategy(
    request: UpdateStrategyRequest,
    open_store: StoreOpener = Depends(get_store_opener),
):
    """Upload a strategy kept client-side, e.g. after an anonymous user signs in."""
    if not request.user_id:
        return JSONResponse(status_code=400, content={"error": "User ID required"})

    store = open_store()
    try:
        if store is None:
            raise UserStoreError("user store not configured")
        store.update_by_id(request.user_id, {
            STRATEGY_COLUMN: [item.model_dump() for item in request.strategy],
            USER_INFO_COLUMN: request.user_info,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        })
    except UserStoreError as e:
        logger.error(f"Error updating investment strategy: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to update investment strategy"})

    return {"success": True}


@app.get("/investment-strategy/{user_id}")
def get_investment_strategy(
    user_id: str,
    open_store: StoreOpener = Depends(get_store_opener),
):
    """Persisted portfolio and facts, shaped so a client can seed the next turn's context."""
    store = open_store()
    if store is None:
        return JSONResponse(status_code=503, content={"error": "Profile storage is not configured"})

    try:
        row = store.get_by_id(user_id)
    except UserStoreError as e:
        logger.error(f"Error loading investment strategy: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    if row is None:
        return JSONResponse(status_code=404, content={"error": "Profile not found"})

    strategy = row.get(STRATEGY_COLUMN) or []
    return {
        "hasStrategy": bool(strategy),
        "currentStrategy": strategy,
        "userInfo": row.get(USER_INFO_COLUMN) or {},
    }
