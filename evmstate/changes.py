"""Sorted changesets and reverts ready to be written to a database."""

from __future__ import annotations

from dataclasses import dataclass, field

from .account import AccountInfo, Bytecode

StorageChangeset = list[tuple[bytes, tuple[bool, list[tuple[int, int]]]]]
StorageRevert = list[list[tuple[bytes, bool, list[tuple[int, int]]]]]


@dataclass
class StateChangeset:
    """Accounts, storage and contracts, each sorted by key.

    In ``storage`` the flag tells whether the stored storage must be wiped first.
    Account info carries no bytecode; ``None`` means the account is removed.
    """

    accounts: list[tuple[bytes, AccountInfo | None]] = field(default_factory=list)
    storage: StorageChangeset = field(default_factory=list)
    contracts: list[tuple[bytes, Bytecode]] = field(default_factory=list)


@dataclass
class StateReverts:
    """Per-transition reverts, sorted by address.

    An account of ``None`` means the account is removed; a storage value of
    zero means the slot is removed.
    """

    accounts: list[list[tuple[bytes, AccountInfo | None]]] = field(
        default_factory=list
    )
    storage: StorageRevert = field(default_factory=list)