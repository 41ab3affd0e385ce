import pytest

from agents.advisor_graph import build_turn_state, run_advisor_turn
from agents.advisor_state import AdvisorContext, AllocationItem, ConversationTurn
from agents.nodes.portfolio import FALLBACK_NOTE, PORTFOLIO_CONFIRMATION
from agents.nodes.reply import READY_INSTRUCTION, build_context_message
from clients.profile_persistence import ClientLocalTarget, ServerProfileTarget
from utils.allocation import generate_default_allocation

MODEL_PORTFOLIO = (
    "Great, here's a plan for you.\n[UPDATE_PORTFOLIO]\n"
    '[{"category": "US Large Cap Stocks", "percentage": 60, "description": "Core"},'
    ' {"category": "Bonds", "percentage": 60}]\nThoughts?'
)


def test_gathering_turn_without_portfolio(recording_model):
    model = recording_model("Nice to meet you! How old are you?")
    state = build_turn_state("Hi, I want to start investing")

    result = run_advisor_turn(state, llm=model.as_runnable(), persistence=ClientLocalTarget())

    assert result.to_response() == {
        "response": "Nice to meet you! How old are you?",
        "strategyUpdated": False,
        "strategy": None,
        "userInfo": None,
    }
    context_message = model.calls[0][1].content
    assert "User has no portfolio yet." in context_message
    assert "IMPORTANT" not in context_message


def test_prompt_layout(recording_model):
    model = recording_model("ok")
    history = [
        ConversationTurn(role="user", content="Hello"),
        ConversationTurn(role="assistant", content="Hi! How old are you?"),
    ]
    state = build_turn_state("I'm 40", history=history)

    run_advisor_turn(state, llm=model.as_runnable())

    messages = model.calls[0]
    assert [m.type for m in messages] == ["system", "system", "human", "ai", "human"]
    assert "[UPDATE_PORTFOLIO]" in messages[0].content
    assert "Known user info: age: 40." in messages[1].content
    assert messages[-1].content == "I'm 40"


def test_ready_turn_demands_portfolio_and_uses_model_payload(recording_model):
    model = recording_model(MODEL_PORTFOLIO)
    state = build_turn_state("I'm 28 and want aggressive growth")

    result = run_advisor_turn(state, llm=model.as_runnable(), persistence=ClientLocalTarget())

    assert model.calls[0][1].content.endswith(READY_INSTRUCTION)
    assert result.strategy_source == "model"
    assert result.strategy_updated
    assert [(item.category, item.percentage) for item in result.strategy] == [
        ("US Large Cap Stocks", 50), ("Bonds", 50)
    ]
    assert result.response == "Great, here's a plan for you.\n\nThoughts?"
    assert result.to_response()["userInfo"] == {
        "age": "28", "riskTolerance": "Aggressive", "goal": "Growth"
    }


def test_fallback_when_model_ignores_the_format(fake_llm):
    state = build_turn_state("I'm 28 and want aggressive growth")

    result = run_advisor_turn(state, llm=fake_llm("Let's build something bold together."))

    assert result.strategy_source == "fallback"
    assert result.strategy_updated
    assert result.strategy == generate_default_allocation(result.user_info)
    assert sum(item.percentage for item in result.strategy) == 100
    assert result.response == f"Let's build something bold together.\n\n{FALLBACK_NOTE}"


def test_fallback_when_payload_is_malformed(fake_llm):
    state = build_turn_state("I'm 60 and conservative")
    reply = 'Here you go [UPDATE_PORTFOLIO] [{"category": "Bonds", percentage: 100}]'

    result = run_advisor_turn(state, llm=fake_llm(reply))

    assert result.strategy_source == "fallback"
    assert result.strategy_updated
    assert [item.category for item in result.strategy][2] == "Government Bonds"
    assert "[UPDATE_PORTFOLIO]" not in result.response


@pytest.mark.parametrize("percentage", ["1e400", "Infinity"])
def test_fallback_when_payload_percentage_is_infinite(fake_llm, percentage):
    reply = f'Here. [UPDATE_PORTFOLIO] [{{"category": "Bonds", "percentage": {percentage}}}]'

    result = run_advisor_turn(build_turn_state("I'm 28 and aggressive"), llm=fake_llm(reply))

    assert result.strategy_source == "fallback"
    assert result.strategy_updated
    assert result.strategy == generate_default_allocation(result.user_info)
    assert "[UPDATE_PORTFOLIO]" not in result.response


def test_not_ready_and_no_payload_returns_prose_only(fake_llm):
    state = build_turn_state("What about risk?")

    result = run_advisor_turn(state, llm=fake_llm("Tell me your age first."))

    assert result.strategy is None
    assert not result.strategy_updated
    assert result.response == "Tell me your age first."


def test_short_model_text_gets_confirmation(fake_llm):
    reply = '[UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 150}]'

    result = run_advisor_turn(build_turn_state("rebalance please"), llm=fake_llm(reply))

    assert result.response == PORTFOLIO_CONFIRMATION
    assert result.strategy == [AllocationItem(category="Bonds", percentage=100)]


def test_zero_sum_payload_is_ignored(fake_llm):
    reply = 'Hmm, okay then. [UPDATE_PORTFOLIO] [{"category": "Cash", "percentage": 0}]'

    result = run_advisor_turn(build_turn_state("whatever you think"), llm=fake_llm(reply))

    assert result.strategy is None
    assert result.response == "Hmm, okay then."


def test_has_strategy_turn_can_still_rebalance(recording_model):
    model = recording_model(MODEL_PORTFOLIO)
    context = AdvisorContext(
        has_strategy=True,
        current_strategy=[AllocationItem(category="Bonds", percentage=100)],
        user_info={"age": "28", "riskTolerance": "Aggressive"},
    )
    state = build_turn_state("Can you add more stocks?", context=context)

    result = run_advisor_turn(state, llm=model.as_runnable())

    context_message = model.calls[0][1].content
    assert context_message.startswith("Current portfolio: Bonds: 100%.")
    assert READY_INSTRUCTION not in context_message
    assert result.strategy_source == "model"
    assert result.strategy_updated


def test_has_strategy_turn_never_falls_back(fake_llm):
    context = AdvisorContext(has_strategy=True, user_info={"age": "28", "riskTolerance": "Aggressive"})

    result = run_advisor_turn(build_turn_state("thanks!", context=context), llm=fake_llm("You're welcome!"))

    assert result.strategy is None
    assert not result.strategy_updated


def test_authenticated_user_is_saved_to_store(fake_llm, user_store):
    state = build_turn_state("I'm 28 and want aggressive growth", user_id="user-1")

    result = run_advisor_turn(
        state,
        llm=fake_llm("Here's a start."),
        persistence=ServerProfileTarget(user_store, "user-1"),
    )

    assert result.strategy_updated
    saved = user_store.rows["user-1"]
    assert saved["investment_user_info"]["age"] == "28"
    assert saved["investment_strategy"][0]["category"] == "US Large Cap Stocks"


def test_store_failure_still_returns_allocation(fake_llm, user_store):
    user_store.fail = True
    state = build_turn_state("I'm 28 and want aggressive growth", user_id="user-1")

    result = run_advisor_turn(
        state,
        llm=fake_llm("Here's a start."),
        persistence=ServerProfileTarget(user_store, "user-1"),
    )
    payload = result.to_response()

    assert payload["strategyUpdated"] is False
    assert payload["strategy"] is not None
    assert payload["userInfo"]["riskTolerance"] == "Aggressive"
    assert payload["response"] == "Here's a start."
    assert len(user_store.updates) == 1


def test_completion_failure_propagates_without_saving(failing_llm, user_store):
    state = build_turn_state("I'm 28 and want aggressive growth", user_id="user-1")

    with pytest.raises(RuntimeError):
        run_advisor_turn(state, llm=failing_llm, persistence=ServerProfileTarget(user_store, "user-1"))

    assert user_store.updates == []


def test_caller_context_is_not_mutated(fake_llm):
    context = AdvisorContext(user_info={"goal": "Income"})
    state = build_turn_state("I'm 50 and moderate", context=context)

    result = run_advisor_turn(state, llm=fake_llm("Noted."))

    assert context.user_info == {"goal": "Income"}
    assert result.user_info["age"] == "50"


def test_build_context_message_variants():
    facts = {"age": "30"}
    strategy = [AllocationItem(category="Bonds", percentage=60), AllocationItem(category="Cash", percentage=40)]

    assert build_context_message(False, [], {}, False) == (
        "User has no portfolio yet. Need to gather user information for personalized advice."
    )
    assert build_context_message(True, strategy, facts, False) == (
        "Current portfolio: Bonds: 60%, Cash: 40%. Known user info: age: 30."
    )
