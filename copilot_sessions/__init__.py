"""Copilot Sessions: discovery and status engine for Copilot CLI sessions.

Usage:
    from copilot_sessions.services import SessionDataSource

    sessions = SessionDataSource().load_sessions()
"""
