"""In-memory database that caches a read-only database and keeps all changes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol

from .account import (
    KECCAK_EMPTY,
    ZERO_ADDRESS,
    ZERO_HASH,
    Account,
    AccountInfo,
    Bytecode,
)
from .emptydb import EmptyDB

_U256_MAX = (1 << 256) - 1


class _DatabaseRef(Protocol):
    def basic_ref(self, address: bytes) -> AccountInfo | None: ...

    def code_by_hash_ref(self, code_hash: bytes) -> Bytecode: ...

    def storage_ref(self, address: bytes, index: int) -> int: ...

    def block_hash_ref(self, number: int) -> bytes: ...


class AccountState(Enum):
    """How far the cached account differs from the underlying database."""

    NOT_EXISTING = "not_existing"
    """The account does not exist (matters before Spurious Dragon)."""
    TOUCHED = "touched"
    """Execution touched the account."""
    STORAGE_CLEARED = "storage_cleared"
    """Storage was wiped; missing slots are zero and not looked up."""
    NONE = "none"
    """Execution did not interact with the account."""

    def is_storage_cleared(self) -> bool:
        return self is AccountState.STORAGE_CLEARED


@dataclass
class DbAccount:
    """Cached account info, state and storage slots."""

    info: AccountInfo = field(default_factory=AccountInfo)
    account_state: AccountState = AccountState.NONE
    storage: dict[int, int] = field(default_factory=dict)

    @classmethod
    def new_not_existing(cls) -> DbAccount:
        return cls(account_state=AccountState.NOT_EXISTING)

    @classmethod
    def from_info(cls, info: AccountInfo | None) -> DbAccount:
        """An existing account for ``info``, or a not existing one for ``None``."""
        if info is None:
            return cls.new_not_existing()
        return cls(info=info, account_state=AccountState.NONE)

    def info_if_exists(self) -> AccountInfo | None:
        """A copy of the account info, or ``None`` if the account does not exist."""
        if self.account_state is AccountState.NOT_EXISTING:
            return None
        return replace(self.info)


def _initial_contracts() -> dict[bytes, Bytecode]:
    return {KECCAK_EMPTY: Bytecode(), ZERO_HASH: Bytecode()}


@dataclass
class CacheDB:
    """Database that keeps all state changes in memory over a read-only ``db``.

    Account code lives in ``contracts`` keyed by code hash; accounts keep only
    the hash. Nothing is ever written to ``db``.
    """

    db: _DatabaseRef
    accounts: dict[bytes, DbAccount] = field(default_factory=dict)
    contracts: dict[bytes, Bytecode] = field(default_factory=_initial_contracts)
    logs: list[Any] = field(default_factory=list)
    block_hashes: dict[int, bytes] = field(default_factory=dict)

    def insert_contract(self, account: AccountInfo) -> None:
        """Store the account's code under its hash and fix up the account's code hash."""
        code = account.code
        if code is not None and not code.is_empty():
            account.code_hash = code.hash_slow()
            self.contracts.setdefault(account.code_hash, code)
        if account.code_hash == ZERO_HASH:
            account.code_hash = KECCAK_EMPTY

    def insert_account_info(self, address: bytes, info: AccountInfo) -> None:
        """Set account info, keeping any cached storage."""
        self.insert_contract(info)
        self.accounts.setdefault(address, DbAccount()).info = info

    def load_account(self, address: bytes) -> DbAccount:
        """The cached account, loaded from the underlying database if missing."""
        account = self.accounts.get(address)
        if account is None:
            account = DbAccount.from_info(self.db.basic_ref(address))
            self.accounts[address] = account
        return account

    def insert_account_storage(self, address: bytes, slot: int, value: int) -> None:
        """Set one storage slot, keeping the account info."""
        self.load_account(address).storage[slot] = value

    def replace_account_storage(
        self, address: bytes, storage: Mapping[int, int]
    ) -> None:
        """Replace the whole storage, keeping the account info."""
        account = self.load_account(address)
        account.account_state = AccountState.STORAGE_CLEARED
        account.storage = dict(storage)

    def commit(self, changes: Mapping[bytes, Account]) -> None:
        """Apply execution output to the cached accounts."""
        for address, account in changes.items():
            if not account.is_touched():
                continue
            if account.is_selfdestructed():
                db_account = self.accounts.setdefault(address, DbAccount())
                db_account.storage.clear()
                db_account.account_state = AccountState.NOT_EXISTING
                db_account.info = AccountInfo()
                continue

            info = replace(account.info)
            self.insert_contract(info)
            db_account = self.accounts.setdefault(address, DbAccount())
            db_account.info = info

            if account.is_created():
                db_account.storage.clear()
                db_account.account_state = AccountState.STORAGE_CLEARED
            elif db_account.account_state.is_storage_cleared():
                db_account.account_state = AccountState.STORAGE_CLEARED
            else:
                db_account.account_state = AccountState.TOUCHED
            db_account.storage.update(
                (key, slot.present_value) for key, slot in account.storage.items()
            )

    def basic(self, address: bytes) -> AccountInfo | None:
        return self.load_account(address).info_if_exists()

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        code = self.contracts.get(code_hash)
        if code is None:
            code = self.db.code_by_hash_ref(code_hash)
            self.contracts[code_hash] = code
        return code

    def storage(self, address: bytes, index: int) -> int:
        """Value of a storage slot, loading the account and slot as needed."""
        account = self.accounts.get(address)
        if account is not None:
            if index in account.storage:
                return account.storage[index]
            if account.account_state in (
                AccountState.STORAGE_CLEARED,
                AccountState.NOT_EXISTING,
            ):
                return 0
            value = self.db.storage_ref(address, index)
            account.storage[index] = value
            return value

        info = self.db.basic_ref(address)
        account = DbAccount.from_info(info)
        value = 0
        if info is not None:
            value = self.db.storage_ref(address, index)
            account.storage[index] = value
        self.accounts[address] = account
        return value

    def block_hash(self, number: int) -> bytes:
        block_hash = self.block_hashes.get(number)
        if block_hash is None:
            block_hash = self.db.block_hash_ref(number)
            self.block_hashes[number] = block_hash
        return block_hash

    def basic_ref(self, address: bytes) -> AccountInfo | None:
        account = self.accounts.get(address)
        if account is not None:
            return account.info_if_exists()
        return self.db.basic_ref(address)

    def code_by_hash_ref(self, code_hash: bytes) -> Bytecode:
        code = self.contracts.get(code_hash)
        if code is not None:
            return code
        return self.db.code_by_hash_ref(code_hash)

    def storage_ref(self, address: bytes, index: int) -> int:
        account = self.accounts.get(address)
        if account is None:
            return self.db.storage_ref(address, index)
        if index in account.storage:
            return account.storage[index]
        if account.account_state in (
            AccountState.STORAGE_CLEARED,
            AccountState.NOT_EXISTING,
        ):
            return 0
        return self.db.storage_ref(address, index)

    def block_hash_ref(self, number: int) -> bytes:
        block_hash = self.block_hashes.get(number)
        if block_hash is not None:
            return block_hash
        return self.db.block_hash_ref(number)


def in_memory_db() -> CacheDB:
    """A ``CacheDB`` over an empty database whose block hashes are Keccak hashes."""
    return CacheDB(EmptyDB(keccak_block_hash=True))


_ADDRESS_ONE = bytes(19) + b"\x01"
_BENCHMARK_BALANCE = 10000000


def _check_address(address: bytes) -> None:
    if len(address) != len(ZERO_ADDRESS):
        raise ValueError(
            f"address must be {len(ZERO_ADDRESS)} bytes, got {len(address)}"
        )


def _check_word(name: str, value: int) -> None:
    if not 0 <= value <= _U256_MAX:
        raise ValueError(f"{name} out of 256-bit range: {value}")


@dataclass
class BenchmarkDB:
    """Benchmark database: the zero address holds the code, address one is funded."""

    bytecode: Bytecode = field(default_factory=Bytecode)
    code_hash: bytes = ZERO_HASH

    @classmethod
    def new_bytecode(cls, bytecode: Bytecode) -> BenchmarkDB:
        return cls(bytecode, bytecode.hash_slow())

    def basic(self, address: bytes) -> AccountInfo | None:
        if address == ZERO_ADDRESS:
            return AccountInfo(
                balance=_BENCHMARK_BALANCE,
                nonce=1,
                code_hash=self.code_hash,
                code=self.bytecode,
            )
        if address == _ADDRESS_ONE:
            return AccountInfo(
                balance=_BENCHMARK_BALANCE,
                nonce=0,
                code_hash=KECCAK_EMPTY,
                code=None,
            )
        return None

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        return Bytecode()

    def storage(self, address: bytes, index: int) -> int:
        """Every slot is zero; the address and index must be well formed."""
        _check_address(address)
        _check_word("storage index", index)
        return 0

    def block_hash(self, number: int) -> bytes:
        """Every block hash is the zero hash; the number must fit in 256 bits."""
        _check_word("block number", number)
        return ZERO_HASH