"""Bundle account: present and original state of an account, with reverts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from .account import AccountInfo, StorageSlot, StorageWithOriginalValues
from .account_status import AccountStatus
from .reverts import AccountInfoRevert, AccountRevert, RevertKind, RevertToSlot

if TYPE_CHECKING:
    from .transition_account import TransitionAccount


class InvalidTransitionError(RuntimeError):
    """Raised when an account is asked to move between incompatible statuses."""


def _copy_info(info: AccountInfo | None) -> AccountInfo | None:
    return replace(info) if info is not None else None


def _copy_storage(storage: StorageWithOriginalValues) -> StorageWithOriginalValues:
    return {key: replace(slot) for key, slot in storage.items()}


def _extend_storage(
    this: StorageWithOriginalValues, update: StorageWithOriginalValues
) -> None:
    """Merge ``update`` into ``this``, keeping the original values already known."""
    for key, slot in update.items():
        this.setdefault(key, replace(slot)).present_value = slot.present_value


def _previous_storage(
    updated: StorageWithOriginalValues,
) -> dict[int, RevertToSlot]:
    return {
        key: RevertToSlot.some(slot.original_value)
        for key, slot in updated.items()
        if slot.original_value != slot.present_value
    }


@dataclass
class BundleAccount:
    """Account state used to build database changesets and reverts.

    ``storage`` holds both original and present slot values. For a destroyed
    account the original values are ignored and present values compare to zero.
    """

    info: AccountInfo | None = None
    original_info: AccountInfo | None = None
    storage: StorageWithOriginalValues = field(default_factory=dict)
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING

    def storage_slot(self, slot: int) -> int | None:
        """Present value of ``slot``; zero if the whole storage is known, else ``None``."""
        found = self.storage.get(slot)
        if found is not None:
            return found.present_value
        if self.status.storage_known():
            return 0
        return None

    def account_info(self) -> AccountInfo | None:
        return _copy_info(self.info)

    def was_destroyed(self) -> bool:
        return self.status.was_destroyed()

    def is_info_changed(self) -> bool:
        return self.info != self.original_info

    def is_contract_changed(self) -> bool:
        present = self.info.code_hash if self.info is not None else None
        original = (
            self.original_info.code_hash if self.original_info is not None else None
        )
        return present != original

    def revert(self, revert: AccountRevert) -> bool:
        """Apply ``revert``; return True if the account can be removed."""
        self.status = revert.previous_status
        kind = revert.account.kind
        if kind is RevertKind.DELETE_IT:
            self.info = None
            self.storage = {}
            return True
        if kind is RevertKind.REVERT_TO:
            self.info = _copy_info(revert.account.info)

        for key, slot in revert.storage.items():
            if slot.is_destroyed:
                self.storage.pop(key, None)
            else:
                value = slot.to_previous_value()
                self.storage.setdefault(
                    key, StorageSlot.new_changed(value, 0)
                ).present_value = value
        return False

    def extend(self, other: BundleAccount) -> None:
        """Take the present state of ``other``, keeping this account's original values."""
        self.status = other.status
        self.info = other.info
        _extend_storage(self.storage, other.storage)

    def _unreachable(self, target: AccountStatus) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"invalid transition to {target.name} from {self.status.name}"
        )

    def update_and_create_revert(
        self, transition: TransitionAccount
    ) -> AccountRevert | None:
        """Move to the state of ``transition`` and return the revert that undoes it."""
        updated_info = _copy_info(transition.info)
        updated_storage = _copy_storage(transition.storage)
        updated_status = transition.status

        if transition.storage_was_destroyed:
            self.storage.clear()

        if self.info != updated_info:
            info_revert = AccountInfoRevert.revert_to(
                _copy_info(self.info) or AccountInfo()
            )
        else:
            info_revert = AccountInfoRevert.do_nothing()

        if updated_status is AccountStatus.CHANGED:
            previous_storage = _previous_storage(updated_storage)
            if self.status in (AccountStatus.CHANGED, AccountStatus.LOADED):
                _extend_storage(self.storage, updated_storage)
            elif self.status is not AccountStatus.LOADED_EMPTY_EIP161:
                raise self._unreachable(updated_status)
            previous_status = self.status
            self.status = AccountStatus.CHANGED
            self.info = updated_info
            return AccountRevert(
                account=info_revert,
                storage=previous_storage,
                previous_status=previous_status,
                wipe_storage=False,
            )

        if updated_status is AccountStatus.IN_MEMORY_CHANGE:
            previous_storage = _previous_storage(updated_storage)
            if self.status in (AccountStatus.LOADED, AccountStatus.IN_MEMORY_CHANGE):
                _extend_storage(self.storage, updated_storage)
                account_revert = info_revert
            elif self.status is AccountStatus.LOADED_EMPTY_EIP161:
                self.storage = updated_storage
                account_revert = info_revert
            elif self.status is AccountStatus.LOADED_NOT_EXISTING:
                self.storage = updated_storage
                account_revert = AccountInfoRevert.delete_it()
            else:
                raise self._unreachable(updated_status)
            previous_status = self.status
            self.status = AccountStatus.IN_MEMORY_CHANGE
            self.info = updated_info
            return AccountRevert(
                account=account_revert,
                storage=previous_storage,
                previous_status=previous_status,
                wipe_storage=False,
            )

        if updated_status.not_modified():
            return None

        if updated_status is AccountStatus.DESTROYED:
            this_info = self.info or AccountInfo()
            self.info = None
            this_storage = self.storage
            self.storage = {}
            if self.status in (
                AccountStatus.IN_MEMORY_CHANGE,
                AccountStatus.CHANGED,
                AccountStatus.LOADED,
                AccountStatus.LOADED_EMPTY_EIP161,
            ):
                revert = AccountRevert.new_selfdestructed(
                    self.status, this_info, this_storage
                )
            elif self.status is AccountStatus.LOADED_NOT_EXISTING:
                return None
            else:
                raise self._unreachable(updated_status)
            self.status = AccountStatus.DESTROYED
            return revert

        if updated_status is AccountStatus.DESTROYED_CHANGED:
            revert_state = AccountRevert.new_selfdestructed_from_bundle(
                self, updated_storage
            )
            if revert_state is not None:
                self.status = AccountStatus.DESTROYED_CHANGED
                self.info = updated_info
                self.storage = updated_storage
                return revert_state

            if self.status in (
                AccountStatus.DESTROYED,
                AccountStatus.LOADED_NOT_EXISTING,
            ):
                revert = AccountRevert(
                    account=AccountInfoRevert.delete_it(),
                    storage=_previous_storage(updated_storage),
                    previous_status=self.status,
                    wipe_storage=False,
                )
            elif self.status is AccountStatus.DESTROYED_CHANGED:
                revert = AccountRevert(
                    account=info_revert,
                    storage=_previous_storage(updated_storage),
                    previous_status=AccountStatus.DESTROYED_CHANGED,
                    wipe_storage=False,
                )
            elif self.status is AccountStatus.DESTROYED_AGAIN:
                revert = AccountRevert.new_selfdestructed_again(
                    AccountStatus.DESTROYED_AGAIN,
                    AccountInfo(),
                    {},
                    dict(updated_storage),
                )
            else:
                raise self._unreachable(updated_status)
            self.status = AccountStatus.DESTROYED_CHANGED
            self.info = updated_info
            _extend_storage(self.storage, updated_storage)
            return revert

        # AccountStatus.DESTROYED_AGAIN
        revert = AccountRevert.new_selfdestructed_from_bundle(self, {})
        if revert is None:
            if self.status is AccountStatus.DESTROYED_CHANGED:
                revert = AccountRevert(
                    account=AccountInfoRevert.revert_to(
                        _copy_info(self.info) or AccountInfo()
                    ),
                    storage=_previous_storage(updated_storage),
                    previous_status=AccountStatus.DESTROYED_CHANGED,
                    wipe_storage=False,
                )
            elif self.status not in (
                AccountStatus.DESTROYED,
                AccountStatus.DESTROYED_AGAIN,
                AccountStatus.LOADED_NOT_EXISTING,
            ):
                raise self._unreachable(updated_status)
        self.status = AccountStatus.DESTROYED_AGAIN
        self.info = None
        self.storage.clear()
        return revert