"""Shared fixtures: fake completion service and in-memory user store."""

import os

# config.validate() runs at import time
os.environ.setdefault("GOOGLE_API_KEY", "test-key")

from typing import Any, Dict, List, Optional

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.runnables import RunnableLambda

from clients.supabase_client import UserStoreError


class InMemoryUserStore:
    """UserStore double keeping profile rows in a dict."""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None, fail: bool = False):
        self.rows = rows if rows is not None else {}
        self.fail = fail
        self.updates: List[tuple] = []

    def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if self.fail:
            raise UserStoreError("store unavailable")
        return self.rows.get(user_id)

    def update_by_id(self, user_id: str, fields: Dict[str, Any]) -> None:
        self.updates.append((user_id, fields))
        if self.fail:
            raise UserStoreError("store unavailable")
        if user_id not in self.rows:
            raise UserStoreError(f"No profile row updated for user {user_id}")
        self.rows[user_id].update(fields)


class RecordingModel:
    """Completion service double that records the prompt messages it receives."""

    def __init__(self, reply: str):
        self.reply = reply
        self.calls: List[list] = []

    def _respond(self, prompt_value):
        self.calls.append(prompt_value.to_messages())
        return self.reply

    def as_runnable(self):
        return RunnableLambda(self._respond)


def _raise_upstream(_prompt):
    raise RuntimeError("completion service unavailable")


@pytest.fixture
def fake_llm():
    def make(*replies: str):
        return FakeListChatModel(responses=list(replies))
    return make


@pytest.fixture
def recording_model():
    def make(reply: str):
        return RecordingModel(reply)
    return make


@pytest.fixture
def failing_llm():
    return RunnableLambda(_raise_upstream)


@pytest.fixture
def user_store():
    return InMemoryUserStore(rows={"user-1": {"id": "user-1"}})
