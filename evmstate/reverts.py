"""Reverts that bring an account back to the state before a transition."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from .account import AccountInfo, StorageWithOriginalValues
from .account_status import AccountStatus


class RevertKind(Enum):
    DO_NOTHING = "do_nothing"
    DELETE_IT = "delete_it"
    REVERT_TO = "revert_to"


@dataclass(frozen=True)
class AccountInfoRevert:
    """What to do with the account info on revert."""

    kind: RevertKind = RevertKind.DO_NOTHING
    info: AccountInfo | None = None

    @classmethod
    def do_nothing(cls) -> AccountInfoRevert:
        """Nothing changed."""
        return cls(RevertKind.DO_NOTHING)

    @classmethod
    def delete_it(cls) -> AccountInfoRevert:
        """The account was created; remove it with all its storage."""
        return cls(RevertKind.DELETE_IT)

    @classmethod
    def revert_to(cls, info: AccountInfo) -> AccountInfoRevert:
        """The account changed; put back ``info``."""
        return cls(RevertKind.REVERT_TO, info)


@dataclass(frozen=True)
class RevertToSlot:
    """Value a slot returns to; ``value`` of ``None`` marks a destroyed slot.

    A destroyed slot is removed on revert, but counts as zero.
    """

    value: int | None

    @classmethod
    def some(cls, value: int) -> RevertToSlot:
        return cls(value)

    @classmethod
    def destroyed(cls) -> RevertToSlot:
        return cls(None)

    @property
    def is_destroyed(self) -> bool:
        return self.value is None

    def to_previous_value(self) -> int:
        return 0 if self.value is None else self.value


class _BundleLike(Protocol):
    info: AccountInfo | None
    storage: StorageWithOriginalValues
    status: AccountStatus


_SELFDESTRUCTABLE = frozenset(
    {
        AccountStatus.IN_MEMORY_CHANGE,
        AccountStatus.CHANGED,
        AccountStatus.LOADED_EMPTY_EIP161,
        AccountStatus.LOADED,
    }
)


@dataclass
class AccountRevert:
    """Revert of one account: info, storage slots and previous status."""

    account: AccountInfoRevert = field(default_factory=AccountInfoRevert.do_nothing)
    storage: dict[int, RevertToSlot] = field(default_factory=dict)
    previous_status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING
    wipe_storage: bool = False

    @classmethod
    def new_selfdestructed_again(
        cls,
        status: AccountStatus,
        account: AccountInfo,
        previous_storage: StorageWithOriginalValues,
        updated_storage: StorageWithOriginalValues,
    ) -> AccountRevert:
        """Like a selfdestruct revert, but slots set after re-creation revert to destroyed."""
        storage = {
            key: RevertToSlot.some(slot.present_value)
            for key, slot in previous_storage.items()
        }
        previous_storage.clear()
        for key in updated_storage:
            storage.setdefault(key, RevertToSlot.destroyed())
        return cls(
            account=AccountInfoRevert.revert_to(account),
            storage=storage,
            previous_status=status,
            wipe_storage=False,
        )

    @classmethod
    def new_selfdestructed_from_bundle(
        cls, bundle_account: _BundleLike, updated_storage: StorageWithOriginalValues
    ) -> AccountRevert | None:
        """Revert for a bundle account that existed before a selfdestruct.

        Drains the bundle account's storage. Returns ``None`` when the account's
        status does not describe a live account.
        """
        if bundle_account.status not in _SELFDESTRUCTABLE:
            return None
        info = bundle_account.info
        previous_storage = dict(bundle_account.storage)
        bundle_account.storage.clear()
        revert = cls.new_selfdestructed_again(
            bundle_account.status,
            replace(info) if info is not None else AccountInfo(),
            previous_storage,
            dict(updated_storage),
        )
        revert.wipe_storage = True
        return revert

    @classmethod
    def new_selfdestructed(
        cls,
        status: AccountStatus,
        account: AccountInfo,
        storage: StorageWithOriginalValues,
    ) -> AccountRevert:
        """Revert for a selfdestruct: every present slot value is restored."""
        return cls(
            account=AccountInfoRevert.revert_to(account),
            storage={
                key: RevertToSlot.some(slot.present_value)
                for key, slot in storage.items()
            },
            previous_status=status,
            wipe_storage=True,
        )