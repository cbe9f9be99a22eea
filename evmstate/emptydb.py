"""A database that holds nothing and answers every query with defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .account import AccountInfo, Bytecode, keccak256

_U256_MAX = (1 << 256) - 1
_ADDRESS_LENGTH = 20


def _check_address(address: bytes) -> None:
    if len(address) != _ADDRESS_LENGTH:
        raise ValueError(
            f"address must be {_ADDRESS_LENGTH} bytes, got {len(address)}"
        )


def _check_word(name: str, value: int) -> None:
    if not 0 <= value <= _U256_MAX:
        raise ValueError(f"{name} out of 256-bit range: {value}")


@dataclass
class EmptyDB:
    """Empty database; block hashes are the Keccak of the block number."""

    keccak_block_hash: bool = False

    @classmethod
    def new_keccak_block_hash(cls) -> EmptyDB:
        return cls(keccak_block_hash=True)

    def basic(self, address: bytes) -> AccountInfo | None:
        return self.basic_ref(address)

    def code_by_hash(self, code_hash: bytes) -> Bytecode:
        return self.code_by_hash_ref(code_hash)

    def storage(self, address: bytes, index: int) -> int:
        return self.storage_ref(address, index)

    def block_hash(self, number: int) -> bytes:
        return self.block_hash_ref(number)

    def basic_ref(self, address: bytes) -> AccountInfo | None:
        """No account exists; the address must be 20 bytes."""
        _check_address(address)
        return None

    def code_by_hash_ref(self, code_hash: bytes) -> Bytecode:
        return Bytecode()

    def storage_ref(self, address: bytes, index: int) -> int:
        """Every slot is zero; the address and index must be well formed."""
        _check_address(address)
        _check_word("storage index", index)
        return 0

    def block_hash_ref(self, number: int) -> bytes:
        """Keccak-256 of the block number as a 32-byte big-endian word."""
        _check_word("block number", number)
        return keccak256(number.to_bytes(32, "big"))