"""Account transition produced when execution output is merged into the cache."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .account import AccountInfo, Bytecode, StorageWithOriginalValues
from .account_status import AccountStatus
from .bundle_account import BundleAccount
from .reverts import AccountRevert


def _copy_info(info: AccountInfo | None) -> AccountInfo | None:
    return replace(info) if info is not None else None


@dataclass
class TransitionAccount:
    """Change of one account, used to build reverts when merged into a bundle.

    ``storage_was_destroyed`` records that some step of the transition wiped
    the storage, which the final statuses alone cannot always tell.
    """

    info: AccountInfo | None = None
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    previous_info: AccountInfo | None = None
    previous_status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    storage: StorageWithOriginalValues = field(default_factory=dict)
    storage_was_destroyed: bool = False

    @classmethod
    def new_empty_eip161(cls, storage: StorageWithOriginalValues) -> TransitionAccount:
        """An empty account created from a not existing one."""
        return cls(
            info=AccountInfo(),
            status=AccountStatus.IN_MEMORY_CHANGE,
            previous_info=None,
            previous_status=AccountStatus.LOADED_NOT_EXISTING,
            storage=storage,
            storage_was_destroyed=False,
        )

    def has_new_contract(self) -> tuple[bytes, Bytecode] | None:
        """Code hash and code if the contract was created or changed."""
        present = self.info.code_hash if self.info is not None else None
        previous = self.previous_info.code_hash if self.previous_info is not None else None
        if present != previous and self.info is not None and self.info.code is not None:
            return self.info.code_hash, self.info.code
        return None

    def update(self, other: TransitionAccount) -> None:
        """Take the new values of ``other``, keeping previous info and original slots."""
        self.info = _copy_info(other.info)
        self.status = other.status
        if other.status in (AccountStatus.DESTROYED, AccountStatus.DESTROYED_AGAIN):
            self.storage = other.storage
            self.storage_was_destroyed = True
        else:
            for key, slot in other.storage.items():
                self.storage.setdefault(key, replace(slot)).present_value = (
                    slot.present_value
                )

    def create_revert(self) -> AccountRevert | None:
        """Revert that brings the account from this transition back to its previous state."""
        return self._original_bundle_account().update_and_create_revert(self)

    def present_bundle_account(self) -> BundleAccount:
        return BundleAccount(
            info=_copy_info(self.info),
            original_info=_copy_info(self.previous_info),
            storage={key: replace(slot) for key, slot in self.storage.items()},
            status=self.status,
        )

    def _original_bundle_account(self) -> BundleAccount:
        return BundleAccount(
            info=_copy_info(self.previous_info),
            original_info=_copy_info(self.previous_info),
            storage={},
            status=self.previous_status,
        )