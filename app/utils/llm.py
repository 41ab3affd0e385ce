# utils/llm.py
from functools import lru_cache
from typing import Optional
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.caches import InMemoryCache
from langchain_core.globals import set_llm_cache
from config import config

# Enable caching if configured
if config.ENABLE_LLM_CACHE:
    set_llm_cache(InMemoryCache())

@lru_cache(maxsize=10)
def get_llm(
    model: str = config.GEMINI_FLASH,
    temperature: float = config.TEMPERATURE,
    max_tokens: Optional[int] = None
) -> ChatGoogleGenerativeAI:
    """
    Get LLM instance with caching so repeated requests share one client.
    """
    return ChatGoogleGenerativeAI(
        model=model,
        api_key=config.GOOGLE_API_KEY,
        temperature=temperature,
        max_tokens=max_tokens or config.MAX_TOKENS,
        timeout=config.ASYNC_TIMEOUT_SECONDS
    )

def get_advisor_llm() -> ChatGoogleGenerativeAI:
    """Get the conversational model used by the investment advisor"""
    return get_llm(
        model=config.ADVISOR_MODEL,
        temperature=config.ADVISOR_TEMPERATURE,
        max_tokens=config.ADVISOR_MAX_TOKENS,
    )
