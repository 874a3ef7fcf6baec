"""Shared types for callscrub."""
