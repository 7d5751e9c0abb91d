"""JSON artifact storage (local data dir and Supabase Storage)"""

from .json_store import FallbackJsonStore, LocalJsonStore, SupabaseJsonStore, get_store

__all__ = ['FallbackJsonStore', 'LocalJsonStore', 'SupabaseJsonStore', 'get_store']
