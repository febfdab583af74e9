"""Supabase client for resolving investor and artist identities."""
from songshare.core.config import settings


def get_supabase_client():
    """
    Get Supabase client with anon key for token verification.

    Only `auth.get_user(jwt)` is used: the auth provider is the source of
    user identity, the ledger stores its user id verbatim.
    """
    from supabase import create_client

    if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
        raise ValueError("SUPABASE_URL / SUPABASE_ANON_KEY not configured")

    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY
    )
