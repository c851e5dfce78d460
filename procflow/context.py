"""Executor context for passing the acting user through the call stack.

Uses Python contextvars so that ``complete_user_task()`` can fall back to
the user of the current request when no executor is passed explicitly.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

# Context variable holding the id of the user acting in the current task
_current_user_id: ContextVar[str | None] = ContextVar("procflow_current_user_id", default=None)


def set_current_user(user_id: str | None) -> Token:
    """Set the acting user for the current async task.

    Args:
        user_id: Id of the acting user

    Returns:
        Token for resetting the context
    """
    return _current_user_id.set(user_id)


def get_current_user() -> str | None:
    """Get the acting user, or None if not set."""
    return _current_user_id.get()


def reset_current_user(token: Token) -> None:
    """Reset the acting user to its previous value.

    Args:
        token: Token returned by set_current_user
    """
    _current_user_id.reset(token)


@contextmanager
def acting_as(user_id: str) -> Iterator[None]:
    """Run the enclosed block on behalf of ``user_id``.

    Usage:
        with acting_as("u1"):
            await instance.complete_user_task()
    """
    token = set_current_user(user_id)
    try:
        yield
    finally:
        reset_current_user(token)
