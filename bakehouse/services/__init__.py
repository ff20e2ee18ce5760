"""
Service layer for the Bakehouse inventory application.

Each module exposes plain functions that accept an optional ``session``.
When a session is passed the function joins the caller's transaction;
otherwise it runs inside its own ``session_scope()``.
"""
