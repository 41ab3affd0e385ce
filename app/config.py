import os
from typing import List
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    """Centralized configuration management"""

    # Environment
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()


    # LLM Configuration
    GEMINI_FLASH = "gemini-2.5-flash"
    ADVISOR_MODEL = os.getenv("ADVISOR_MODEL", GEMINI_FLASH)

    # LLM Parameters
    TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
    MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "4096"))

    # Advisor conversation
    ADVISOR_TEMPERATURE = float(os.getenv("ADVISOR_TEMPERATURE", "0.7"))
    ADVISOR_MAX_TOKENS = int(os.getenv("ADVISOR_MAX_TOKENS", "500"))
    ADVISOR_HISTORY_WINDOW = int(os.getenv("ADVISOR_HISTORY_WINDOW", "20"))

    # API Keys
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

    # User store (Supabase profiles table)
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
    PROFILES_TABLE = os.getenv("PROFILES_TABLE", "profiles")

    # HTTP
    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

    # Caching
    ENABLE_LLM_CACHE = os.getenv("ENABLE_LLM_CACHE", "false").lower() == "true"

    # Performance
    ASYNC_TIMEOUT_SECONDS = int(os.getenv("ASYNC_TIMEOUT_SECONDS", "30"))

    @classmethod
    def has_user_store(cls) -> bool:
        return bool(cls.SUPABASE_URL and cls.SUPABASE_ANON_KEY)

    # Validation
    @classmethod
    def validate(cls):
        """Validate configuration"""
        required_vars = ["GOOGLE_API_KEY"]
        missing = [var for var in required_vars if not getattr(cls, var)]

        if missing:
            raise ValueError(f"Missing required environment variables: {missing}")

        return True

# Singleton instance
config = Config()
config.validate()
