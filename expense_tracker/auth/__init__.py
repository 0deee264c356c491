"""Access gate package: identity resolution and login."""

from expense_tracker.auth.gate import AccessGate, AuthenticationError, parse_identity_token

__all__ = ["AccessGate", "AuthenticationError", "parse_identity_token"]
