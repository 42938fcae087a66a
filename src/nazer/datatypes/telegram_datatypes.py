"""
Type-safe wrapper classes for Telegram identifiers.

Telegram user ids are positive 64-bit integers and group/supergroup ids are
negative ones (``-100...`` for supergroups). Wrapping them keeps user and chat
ids from being swapped by accident while still comparing equal to plain ints,
which is what the Bot API and SQLite hand back.
"""

from __future__ import annotations

from typing import Union


class _TelegramID:
    """
    Shared behaviour of Telegram id wrappers.

    The id is stored as a normalised decimal string so that ``"42"``, ``42``
    and ``UserID(42)`` all produce the same wrapper and the same hash.

    Example:
        >>> uid = UserID(123456789)
        >>> uid.to_int()
        123456789
        >>> str(ChatID("-1001234567890"))
        '-1001234567890'
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "_TelegramID"]) -> None:
        """
        Args:
            value: The id as a string, int, or wrapper of the same kind.

        Raises:
            ValueError: If the value cannot be converted to an integer id.
        """
        if isinstance(value, _TelegramID):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Bot API calls and SQL parameters."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, type(self)):
            return self._value == other._value
        if isinstance(other, bool):
            return NotImplemented
        if isinstance(other, int):
            return self._value == str(other)
        if isinstance(other, str):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(_TelegramID):
    """Telegram user id."""

    __slots__ = ()

    @classmethod
    def from_user(cls, user) -> "UserID":
        """Create a UserID from a ``telegram.User`` (or anything with ``.id``)."""
        return cls(user.id)


class ChatID(_TelegramID):
    """Telegram chat id; negative for groups and supergroups."""

    __slots__ = ()

    @classmethod
    def from_chat(cls, chat) -> "ChatID":
        """Create a ChatID from a ``telegram.Chat`` (or anything with ``.id``)."""
        return cls(chat.id)
