"""
Access Gate

Maps a caller-supplied identity token to a User, and implements the
login get-or-create.

BOUNDARY ASSUMPTION: the identity token is the user's integer id,
asserted by the caller (e.g. an X-User-Id header). Nothing is proven:
there is no password, signature or session. Whoever deploys this behind
a real credential mechanism should resolve that credential to a user id
first and pass the id here.
"""

import asyncio
import weakref
from typing import Any, Optional

from expense_tracker.logs import get_logger
from expense_tracker.models.expense import User
from expense_tracker.services.storage import ConflictError, ExpenseStorageInterface
from expense_tracker.validation import ExpenseValidator


logger = get_logger(__name__)

# Largest id a relational store can hold (signed 64-bit)
MAX_USER_ID = 2**63 - 1


class AuthenticationError(Exception):
    """Identity token missing, malformed or not matching any user."""
    pass


def parse_identity_token(token: Any) -> int:
    """
    Turn a raw identity token into a user id.

    Accepts positive ints and strings of decimal digits, up to MAX_USER_ID.

    Raises:
        AuthenticationError: If the token is missing or malformed
    """
    if token is None:
        raise AuthenticationError("Authentication required")
    # bool is an int subclass; True is not user 1
    if isinstance(token, bool):
        raise AuthenticationError("Invalid identity token")
    if isinstance(token, int):
        user_id = token
    elif isinstance(token, str) and token.strip().isdecimal():
        try:
            user_id = int(token.strip())
        except ValueError:
            # longer than int's string conversion limit
            raise AuthenticationError("Invalid identity token")
    elif isinstance(token, str) and not token.strip():
        raise AuthenticationError("Authentication required")
    else:
        raise AuthenticationError("Invalid identity token")
    if user_id < 1 or user_id > MAX_USER_ID:
        raise AuthenticationError("Invalid identity token")
    return user_id


class AccessGate:
    """
    Resolves identities and logs users in.

    Login is get-or-create by email. Concurrent first logins for the
    same email in this process are serialized by a per-email lock; a
    ConflictError from the store (another process created the user
    first) is resolved by reading the existing user back.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        validator: Optional[ExpenseValidator] = None,
    ):
        self._storage = storage
        self._validator = validator or ExpenseValidator()
        self._login_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def resolve_identity(self, token: Any) -> User:
        """
        Resolve an identity token to its User.

        Raises:
            AuthenticationError: If the token is missing, malformed or unknown
        """
        user_id = parse_identity_token(token)
        user = await self._storage.get_user(user_id)
        if user is None:
            logger.info("identity_rejected", user_id=user_id)
            raise AuthenticationError("Invalid user")
        return user

    async def login(self, email: Any, name: Any) -> User:
        """
        Return the user with this email, creating it on first login.

        The name is only used on creation: a later login with a
        different name returns the original record unchanged.

        Raises:
            ValidationError: If email or name is missing
        """
        email, name = self._validator.validate_login(email, name)

        lock = self._login_locks.setdefault(email, asyncio.Lock())
        async with lock:
            user = await self._storage.get_user_by_email(email)
            if user is not None:
                logger.info("user_logged_in", user_id=user.id)
                return user

            try:
                user = await self._storage.create_user(email, name)
            except ConflictError:
                # Lost a race with another writer; the winner's record stands
                user = await self._storage.get_user_by_email(email)
                if user is None:
                    raise
                logger.info("user_login_conflict_resolved", user_id=user.id)
                return user

            logger.info("user_created", user_id=user.id)
            return user
