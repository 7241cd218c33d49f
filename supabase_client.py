# supabase_client.py
from supabase import create_client, Client

import settings

_supabase: Client | None = None


def get_client() -> Client:
    global _supabase
    if _supabase is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise ValueError("SUPABASE_URL or SUPABASE_ANON_KEY is missing in .env")
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
    return _supabase
