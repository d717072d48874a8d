"""
Google sign-in helpers.

Design goals:
- One fixed provider (Google), one fixed flow (authorization code, server-side exchange).
- User persistence and session issuance are delegated to the identity backend.
- Anti-forgery state is one-time use and lives in an injected store.
"""
