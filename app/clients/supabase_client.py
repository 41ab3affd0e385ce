"""
Supabase client for the user profile store.

Authenticated users keep their advisor state on their row of the `profiles`
table:
- investment_strategy: the recommended allocation (JSON array)
- investment_user_info: the extracted profile facts (JSON object)

The store is a thin wrapper that exposes get/update by user id and turns any
postgrest failure into a UserStoreError.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from supabase import Client, ClientOptions, create_client

from config import config

logger = logging.getLogger(__name__)

STRATEGY_COLUMN = "investment_strategy"
USER_INFO_COLUMN = "investment_user_info"


class UserStoreError(Exception):
    """Raised when the user store cannot read or write a profile."""


class UserStore(Protocol):
    def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update_by_id(self, user_id: str, fields: Dict[str, Any]) -> None:
        ...


class SupabaseUserStore:
    """
    Profile store backed by a Supabase table.

    Example:
        store = SupabaseUserStore.from_config(auth_header="Bearer eyJ...")
        store.update_by_id("user-123", {"investment_strategy": [...]})
    """

    def __init__(self, client: Client, table: str = config.PROFILES_TABLE):
        self._client = client
        self.table = table

    @classmethod
    def from_config(cls, auth_header: Optional[str] = None) -> "SupabaseUserStore":
        """
        Build a store from SUPABASE_URL / SUPABASE_ANON_KEY.

        The caller's Authorization header is forwarded so that row level
        security evaluates the request as that user.
        """
        if auth_header:
            client = create_client(
                config.SUPABASE_URL,
                config.SUPABASE_ANON_KEY,
                options=ClientOptions(headers={"Authorization": auth_header}),
            )
        else:
            client = create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)
        return cls(client)

    def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self._client.table(self.table)
                .select(f"id, {STRATEGY_COLUMN}, {USER_INFO_COLUMN}")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise UserStoreError(f"Failed to load profile {user_id}: {e}") from e

        rows = response.data or []
        return rows[0] if rows else None

    def update_by_id(self, user_id: str, fields: Dict[str, Any]) -> None:
        try:
            response = (
                self._client.table(self.table)
                .update(fields)
                .eq("id", user_id)
                .execute()
            )
        except Exception as e:
            raise UserStoreError(f"Failed to update profile {user_id}: {e}") from e

        # RLS or a wrong id yields an empty result instead of an error
        if not response.data:
            raise UserStoreError(f"No profile row updated for user {user_id}")
        logger.info(f"Updated profile {user_id} ({', '.join(fields)})")


def get_user_store(auth_header: Optional[str] = None) -> Optional[SupabaseUserStore]:
    """Return a configured store, or None when Supabase is not set up."""
    if not config.has_user_store():
        logger.debug("User store requested but Supabase is not configured")
        return None
    return SupabaseUserStore.from_config(auth_header)
