"""Account, bytecode and storage value types shared by the state layers."""

from __future__ import annotations

from dataclasses import dataclass, field

from Crypto.Hash import keccak


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


KECCAK_EMPTY = bytes.fromhex(
    "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
)
ZERO_HASH = bytes(32)
ZERO_ADDRESS = bytes(20)


@dataclass(frozen=True)
class Bytecode:
    """Raw contract code."""

    raw: bytes = b""

    def hash_slow(self) -> bytes:
        """Hash of the code; the empty code hashes to ``KECCAK_EMPTY``."""
        if self.is_empty():
            return KECCAK_EMPTY
        return keccak256(self.raw)

    def is_empty(self) -> bool:
        return len(self.raw) == 0


@dataclass
class AccountInfo:
    """Balance, nonce and code of an account.

    Equality ignores the attached code and compares only its hash.
    """

    balance: int = 0
    nonce: int = 0
    code_hash: bytes = KECCAK_EMPTY
    code: Bytecode | None = field(default=None, compare=False)

    def is_empty(self) -> bool:
        """True for zero balance, zero nonce and no code."""
        code_empty = self.code_hash in (KECCAK_EMPTY, ZERO_HASH)
        return self.balance == 0 and self.nonce == 0 and code_empty


@dataclass
class StorageSlot:
    """A storage value together with the value it had originally."""

    original_value: int = 0
    present_value: int = 0

    @classmethod
    def new_changed(cls, original_value: int, present_value: int) -> StorageSlot:
        return cls(original_value=original_value, present_value=present_value)

    def is_changed(self) -> bool:
        return self.original_value != self.present_value


StorageWithOriginalValues = dict[int, StorageSlot]
PlainStorage = dict[int, int]


@dataclass
class Account:
    """An account as produced by execution, with its change flags."""

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: StorageWithOriginalValues = field(default_factory=dict)
    touched: bool = False
    selfdestructed: bool = False
    created: bool = False

    def is_touched(self) -> bool:
        return self.touched

    def is_selfdestructed(self) -> bool:
        return self.selfdestructed

    def is_created(self) -> bool:
        return self.created

    def is_empty(self) -> bool:
        return self.info.is_empty()

    def mark_touch(self) -> None:
        self.touched = True


@dataclass
class PlainAccount:
    """Account info with storage that carries no original values."""

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: PlainStorage = field(default_factory=dict)

    @classmethod
    def new_empty_with_storage(cls, storage: PlainStorage) -> PlainAccount:
        return cls(info=AccountInfo(), storage=storage)

    def into_components(self) -> tuple[AccountInfo, PlainStorage]:
        return self.info, self.storage