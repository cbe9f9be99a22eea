"""Cache of loaded accounts that applies execution output and yields transitions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from .account import Account, AccountInfo, Bytecode, PlainAccount, PlainStorage
from .cache_account import CacheAccount
from .transition_account import TransitionAccount


@dataclass
class CacheState:
    """Accounts and contracts loaded so far, with original and modified values.

    ``has_state_clear`` enables EIP-161 state clearing (Spurious Dragon).
    """

    accounts: dict[bytes, CacheAccount] = field(default_factory=dict)
    contracts: dict[bytes, Bytecode] = field(default_factory=dict)
    has_state_clear: bool = True

    def set_state_clear_flag(self, has_state_clear: bool) -> None:
        self.has_state_clear = has_state_clear

    def trie_account(self) -> Iterator[tuple[bytes, PlainAccount]]:
        """Every account that exists, with its address."""
        for address, cached in self.accounts.items():
            if cached.account is not None:
                yield address, cached.account

    def insert_not_existing(self, address: bytes) -> None:
        self.accounts[address] = CacheAccount.new_loaded_not_existing()

    def insert_account(self, address: bytes, info: AccountInfo) -> None:
        """Insert a loaded account, or a loaded empty one if ``info`` is empty."""
        self.insert_account_with_storage(address, info, {})

    def insert_account_with_storage(
        self, address: bytes, info: AccountInfo, storage: PlainStorage
    ) -> None:
        if info.is_empty():
            account = CacheAccount.new_loaded_empty_eip161(storage)
        else:
            account = CacheAccount.new_loaded(info, storage)
        self.accounts[address] = account

    def apply_evm_state(
        self, evm_state: Mapping[bytes, Account]
    ) -> list[tuple[bytes, TransitionAccount]]:
        """Apply execution output and return the transitions it made.

        Every touched account must already be in the cache.
        """
        transitions: list[tuple[bytes, TransitionAccount]] = []
        for address, account in evm_state.items():
            if not account.is_touched():
                continue
            try:
                cached = self.accounts[address]
            except KeyError:
                raise KeyError(
                    f"account {address.hex()} is not present in the cache"
                ) from None

            if account.is_selfdestructed():
                transition = cached.selfdestruct()
            elif account.is_created():
                transition = cached.newly_created(account.info, account.storage)
            elif account.is_empty():
                if self.has_state_clear:
                    transition = cached.touch_empty_eip161()
                else:
                    transition = cached.touch_create_pre_eip161(account.storage)
            else:
                transition = cached.change(account.info, account.storage)

            if transition is not None:
                transitions.append((address, transition))
        return transitions