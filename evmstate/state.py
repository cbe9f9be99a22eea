"""Block execution state backed by a database, with cache, transitions and bundle."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from .account import Account, AccountInfo, Bytecode, PlainStorage
from .bundle_state import BundleState
from .cache import CacheState
from .cache_account import CacheAccount
from .transition_account import TransitionAccount
from .transition_state import TransitionState


class _Database(Protocol):
    def basic(self, address: bytes) -> AccountInfo | None: ...

    def code_by_hash(self, code_hash: bytes) -> Bytecode: ...

    def storage(self, address: bytes, index: int) -> int: ...

    def block_hash(self, number: int) -> bytes: ...


@dataclass
class State:
    """State of the chain during block execution.

    Reads go through ``cache`` and fall back to ``database``. Committed
    execution output becomes transitions in ``transition_state`` (if set),
    which ``merge_transitions`` folds into ``bundle_state``.
    """

    database: _Database
    cache: CacheState = field(default_factory=CacheState)
    transition_state: TransitionState | None = field(default_factory=TransitionState)
    bundle_state: BundleState | None = None
    use_preloaded_bundle: bool = False

    def increment_balances(self, balances: Iterable[tuple[bytes, int]]) -> None:
        """Add each amount to its account, loading accounts as needed."""
        transitions = [
            (address, self.load_cache_account(address).increment_balance(balance))
            for address, balance in balances
        ]
        self._apply_transitions(transitions)

    def drain_balances(self, addresses: Iterable[bytes]) -> list[int]:
        """Empty the balances of the given accounts and return the amounts."""
        transitions: list[tuple[bytes, TransitionAccount]] = []
        balances: list[int] = []
        for address in addresses:
            balance, transition = self.load_cache_account(address).drain_balance()
            balances.append(balance)
            transitions.append((address, transition))
        self._apply_transitions(transitions)
        return balances

    def set_state_clear_flag(self, has_state_clear: bool) -> None:
        """Enable or disable EIP-161 state clearing."""
        self.cache.set_state_clear_flag(has_state_clear)

    def insert_not_existing(self, address: bytes) -> None:
        self.cache.insert_not_existing(address)

    def insert_account(self, address: bytes, info: AccountInfo) -> None:
        self.cache.insert_account(address, info)

    def insert_account_with_storage(
        self, address: bytes, info: AccountInfo, storage: PlainStorage
    ) -> None:
        self.cache.insert_account_with_storage(address, info, storage)

    def _apply_transitions(
        self, transitions: list[tuple[bytes, TransitionAccount]]
    ) -> None:
        if self.transition_state is not None:
            self.transition_state.add_transitions(transitions)

    def merge_transitions(self) -> None:
        """Fold pending transitions into the bundle state, recording reverts."""
        if self.transition_state is None:
            return
        transitions = self.transition_state.take()
        if self.bundle_state is None:
            self.bundle_state = BundleState()
        self.bundle_state.apply_block_substate_and_create_reverts(transitions)

    def load_cache_account(self, address: bytes) -> CacheAccount:
        """Return the cached account, loading it from the database first if needed."""
        cached = self.cache.accounts.get(address)
        if cached is None:
            info = self.database.basic(address)
            if info is None:
                cached = CacheAccount.new_loaded_not_existing()
            elif info.is_empty():
                cached = CacheAccount.new_loaded_empty_eip161({})
            else:
                cached = CacheAccount.new_loaded(info, {})
            self.cache.accounts[address] = cached
        return cached

    def take_bundle(self) -> BundleState:
        """Return the bundle state and leave an empty one in its place."""
        if self.bundle_state is None:
            raise ValueError("state has no bundle state")
        bundle = self.bundle_state
        self.bundle_state = BundleState()
        return bundle

    def basic(self, address: bytes) -> AccountInfo | None:
        return self.load_cache_account(address).account_info()

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        code = self.cache.contracts.get(code_hash)
        if code is None:
            code = self.database.code_by_hash(code_hash)
            self.cache.contracts[code_hash] = code
        return code

    def storage(self, address: bytes, index: int) -> int:
        """Value of a storage slot; the account must already be loaded."""
        cached = self.cache.accounts.get(address)
        if cached is None:
            raise KeyError(
                f"account {address.hex()} must be loaded before its storage is read"
            )
        if cached.account is None:
            return 0
        slots = cached.account.storage
        if index in slots:
            return slots[index]
        value = 0 if cached.status.storage_known() else self.database.storage(address, index)
        slots[index] = value
        return value

    def block_hash(self, number: int) -> bytes:
        return self.database.block_hash(number)

    def commit(self, evm_state: Mapping[bytes, Account]) -> None:
        """Apply execution output to the cache and record its transitions."""
        self._apply_transitions(self.cache.apply_evm_state(evm_state))