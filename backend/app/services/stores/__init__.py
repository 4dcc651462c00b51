"""Supabase-backed store collaborators."""
