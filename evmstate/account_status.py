"""Lifecycle status of an account held in the block and bundle states."""

from __future__ import annotations

from enum import Enum


class AccountStatus(Enum):
    """Every state an account can be in while transactions and blocks run over it."""

    LOADED_NOT_EXISTING = "loaded_not_existing"
    LOADED = "loaded"
    LOADED_EMPTY_EIP161 = "loaded_empty_eip161"
    IN_MEMORY_CHANGE = "in_memory_change"
    CHANGED = "changed"
    DESTROYED = "destroyed"
    DESTROYED_CHANGED = "destroyed_changed"
    DESTROYED_AGAIN = "destroyed_again"

    @classmethod
    def default(cls) -> AccountStatus:
        """The status of an account nothing is known about."""
        return cls.LOADED_NOT_EXISTING

    def not_modified(self) -> bool:
        """True if the account was only loaded from the database."""
        return self in _NOT_MODIFIED

    def was_destroyed(self) -> bool:
        """True if the account was destroyed by SELFDESTRUCT."""
        return self in _DESTROYED

    def storage_known(self) -> bool:
        """True if the whole storage is in memory (new or wiped)."""
        return self in _STORAGE_KNOWN

    def modified_but_not_destroyed(self) -> bool:
        """True if the account changed but was never destroyed."""
        return self in _MODIFIED_NOT_DESTROYED


_NOT_MODIFIED = frozenset(
    {
        AccountStatus.LOADED_NOT_EXISTING,
        AccountStatus.LOADED,
        AccountStatus.LOADED_EMPTY_EIP161,
    }
)
_DESTROYED = frozenset(
    {
        AccountStatus.DESTROYED,
        AccountStatus.DESTROYED_CHANGED,
        AccountStatus.DESTROYED_AGAIN,
    }
)
_STORAGE_KNOWN = frozenset(
    {
        AccountStatus.LOADED_NOT_EXISTING,
        AccountStatus.IN_MEMORY_CHANGE,
        AccountStatus.DESTROYED,
        AccountStatus.DESTROYED_CHANGED,
        AccountStatus.DESTROYED_AGAIN,
    }
)
_MODIFIED_NOT_DESTROYED = frozenset(
    {AccountStatus.CHANGED, AccountStatus.IN_MEMORY_CHANGE}
)