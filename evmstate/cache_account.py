"""Cached account that turns execution output into transitions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from .account import (
    KECCAK_EMPTY,
    AccountInfo,
    PlainAccount,
    PlainStorage,
    StorageWithOriginalValues,
)
from .account_status import AccountStatus
from .bundle_account import InvalidTransitionError
from .transition_account import TransitionAccount

_T = TypeVar("_T")
_U128_MAX = (1 << 128) - 1

_DESTROYED_ANY = frozenset(
    {
        AccountStatus.DESTROYED,
        AccountStatus.DESTROYED_AGAIN,
        AccountStatus.DESTROYED_CHANGED,
    }
)
_IS_SOME = frozenset(
    {
        AccountStatus.CHANGED,
        AccountStatus.IN_MEMORY_CHANGE,
        AccountStatus.DESTROYED_CHANGED,
        AccountStatus.LOADED,
        AccountStatus.LOADED_EMPTY_EIP161,
    }
)


def _copy_info(info: AccountInfo | None) -> AccountInfo | None:
    return replace(info) if info is not None else None


def _present_values(storage: StorageWithOriginalValues) -> PlainStorage:
    return {key: slot.present_value for key, slot in storage.items()}


def _fully_in_memory(info: AccountInfo | None) -> bool:
    """An account with no code and nonce zero has no storage in the database."""
    return info is not None and info.code_hash == KECCAK_EMPTY and info.nonce == 0


@dataclass
class CacheAccount:
    """Account loaded from the database and updated by execution output."""

    account: PlainAccount | None = None
    status: AccountStatus = AccountStatus.LOADED_NOT_EXISTING

    @classmethod
    def new_loaded(cls, info: AccountInfo, storage: PlainStorage) -> CacheAccount:
        return cls(PlainAccount(info=info, storage=storage), AccountStatus.LOADED)

    @classmethod
    def new_loaded_empty_eip161(cls, storage: PlainStorage) -> CacheAccount:
        return cls(
            PlainAccount.new_empty_with_storage(storage),
            AccountStatus.LOADED_EMPTY_EIP161,
        )

    @classmethod
    def new_loaded_not_existing(cls) -> CacheAccount:
        return cls(None, AccountStatus.LOADED_NOT_EXISTING)

    @classmethod
    def new_newly_created(cls, info: AccountInfo, storage: PlainStorage) -> CacheAccount:
        return cls(
            PlainAccount(info=info, storage=storage), AccountStatus.IN_MEMORY_CHANGE
        )

    @classmethod
    def new_destroyed(cls) -> CacheAccount:
        return cls(None, AccountStatus.DESTROYED)

    @classmethod
    def new_changed(cls, info: AccountInfo, storage: PlainStorage) -> CacheAccount:
        return cls(PlainAccount(info=info, storage=storage), AccountStatus.CHANGED)

    def is_some(self) -> bool:
        """True if the status describes an existing account."""
        return self.status in _IS_SOME

    def storage_slot(self, slot: int) -> int | None:
        if self.account is None:
            return None
        return self.account.storage.get(slot)

    def account_info(self) -> AccountInfo | None:
        return _copy_info(self.account.info) if self.account is not None else None

    def into_components(
        self,
    ) -> tuple[tuple[AccountInfo, PlainStorage] | None, AccountStatus]:
        components = self.account.into_components() if self.account else None
        return components, self.status

    def _invalid(self, action: str) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"wrong state transition, {action} is not possible from {self.status.name}"
        )

    def touch_create_pre_eip161(
        self, storage: StorageWithOriginalValues
    ) -> TransitionAccount | None:
        """Touch an account before EIP-161, which counts as creating it."""
        previous_status = self.status
        if previous_status is AccountStatus.DESTROYED_CHANGED:
            if self.account is not None and self.account.info.is_empty():
                return None
            new_status = AccountStatus.DESTROYED_CHANGED
        elif previous_status in (
            AccountStatus.DESTROYED,
            AccountStatus.DESTROYED_AGAIN,
        ):
            new_status = AccountStatus.DESTROYED_CHANGED
        elif previous_status is AccountStatus.LOADED_EMPTY_EIP161:
            return None
        elif previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.LOADED_NOT_EXISTING,
        ):
            new_status = AccountStatus.IN_MEMORY_CHANGE
        else:
            raise self._invalid("touch create")

        self.status = new_status
        previous_info = self.account.info if self.account is not None else None
        self.account = PlainAccount.new_empty_with_storage(_present_values(storage))
        return TransitionAccount(
            info=AccountInfo(),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=storage,
            storage_was_destroyed=False,
        )

    def touch_empty_eip161(self) -> TransitionAccount | None:
        """Touch an empty account, which removes it under EIP-161."""
        previous_status = self.status
        if previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.DESTROYED,
            AccountStatus.LOADED_EMPTY_EIP161,
        ):
            new_status = AccountStatus.DESTROYED
        elif previous_status is AccountStatus.LOADED_NOT_EXISTING:
            new_status = AccountStatus.LOADED_NOT_EXISTING
        elif previous_status in (
            AccountStatus.DESTROYED_AGAIN,
            AccountStatus.DESTROYED_CHANGED,
        ):
            new_status = AccountStatus.DESTROYED_AGAIN
        else:
            raise self._invalid("touch empty")

        previous_info = self.account.info if self.account is not None else None
        self.account = None
        self.status = new_status
        if previous_status in (
            AccountStatus.LOADED_NOT_EXISTING,
            AccountStatus.DESTROYED,
            AccountStatus.DESTROYED_AGAIN,
        ):
            return None
        return TransitionAccount(
            info=None,
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=True,
        )

    def selfdestruct(self) -> TransitionAccount | None:
        """Mark the account destroyed and drop its info and storage."""
        previous_info = self.account.info if self.account is not None else None
        self.account = None
        previous_status = self.status

        if previous_status is AccountStatus.LOADED_NOT_EXISTING:
            return None
        if previous_status in _DESTROYED_ANY:
            self.status = AccountStatus.DESTROYED_AGAIN
        else:
            self.status = AccountStatus.DESTROYED
        return TransitionAccount(
            info=None,
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=True,
        )

    def newly_created(
        self, new_info: AccountInfo, new_storage: StorageWithOriginalValues
    ) -> TransitionAccount:
        """Replace the account with a newly created contract."""
        previous_status = self.status
        previous_info = self.account.info if self.account is not None else None

        if previous_status in _DESTROYED_ANY:
            self.status = AccountStatus.DESTROYED_CHANGED
        else:
            self.status = AccountStatus.IN_MEMORY_CHANGE

        transition = TransitionAccount(
            info=replace(new_info),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=new_storage,
            storage_was_destroyed=False,
        )
        self.account = PlainAccount(info=new_info, storage=_present_values(new_storage))
        return transition

    def increment_balance(self, balance: int) -> TransitionAccount:
        """Add ``balance`` to the account; the amount is assumed non-zero."""

        def add(info: AccountInfo) -> None:
            info.balance += balance

        return self._account_info_change(add)[1]

    def drain_balance(self) -> tuple[int, TransitionAccount]:
        """Set the balance to zero and return the amount taken."""

        def drain(info: AccountInfo) -> int:
            amount = info.balance
            if amount > _U128_MAX:
                raise OverflowError(f"balance does not fit in 128 bits: {amount}")
            info.balance = 0
            return amount

        return self._account_info_change(drain)

    def _account_info_change(
        self, change: Callable[[AccountInfo], _T]
    ) -> tuple[_T, TransitionAccount]:
        previous_status = self.status
        previous_info = self.account_info()
        account = self.account if self.account is not None else PlainAccount()
        self.account = None
        try:
            output = change(account.info)
        finally:
            self.account = account

        if previous_status is AccountStatus.LOADED:
            self.status = (
                AccountStatus.IN_MEMORY_CHANGE
                if _fully_in_memory(previous_info)
                else AccountStatus.CHANGED
            )
        elif previous_status in (
            AccountStatus.LOADED_NOT_EXISTING,
            AccountStatus.LOADED_EMPTY_EIP161,
            AccountStatus.IN_MEMORY_CHANGE,
        ):
            self.status = AccountStatus.IN_MEMORY_CHANGE
        elif previous_status is AccountStatus.CHANGED:
            self.status = AccountStatus.CHANGED
        else:
            self.status = AccountStatus.DESTROYED_CHANGED

        return output, TransitionAccount(
            info=self.account_info(),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage={},
            storage_was_destroyed=False,
        )

    def change(
        self, new: AccountInfo, storage: StorageWithOriginalValues
    ) -> TransitionAccount:
        """Apply new account info and storage from execution."""
        previous_status = self.status
        previous_info = self.account_info()
        this_storage = self.account.storage if self.account is not None else {}
        this_storage.update(_present_values(storage))

        if previous_status is AccountStatus.LOADED:
            self.status = (
                AccountStatus.IN_MEMORY_CHANGE
                if _fully_in_memory(previous_info)
                else AccountStatus.CHANGED
            )
        elif previous_status is AccountStatus.CHANGED:
            self.status = AccountStatus.CHANGED
        elif previous_status in (
            AccountStatus.IN_MEMORY_CHANGE,
            AccountStatus.LOADED_EMPTY_EIP161,
            AccountStatus.LOADED_NOT_EXISTING,
        ):
            self.status = AccountStatus.IN_MEMORY_CHANGE
        else:
            self.status = AccountStatus.DESTROYED_CHANGED

        self.account = PlainAccount(info=new, storage=this_storage)
        return TransitionAccount(
            info=self.account_info(),
            status=self.status,
            previous_info=previous_info,
            previous_status=previous_status,
            storage=storage,
            storage_was_destroyed=False,
        )