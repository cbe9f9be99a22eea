"""Bundle state: accumulated account changes of one or more blocks, with reverts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from .account import AccountInfo, Bytecode, StorageSlot
from .account_status import AccountStatus
from .bundle_account import BundleAccount
from .changes import StateChangeset, StateReverts
from .reverts import AccountInfoRevert, AccountRevert, RevertKind, RevertToSlot
from .transition_state import TransitionState

BlockReverts = list[tuple[bytes, AccountRevert]]


def _info_revert(account: AccountInfoRevert | AccountInfo | None) -> AccountInfoRevert:
    if account is None:
        return AccountInfoRevert.do_nothing()
    if isinstance(account, AccountInfoRevert):
        return account
    return AccountInfoRevert.revert_to(account)


def _by_key(item: tuple) -> bytes | int:
    return item[0]


@dataclass
class BundleState:
    """Accounts that changed, with their original and present state.

    ``reverts`` holds one list per applied transition state; each list is
    unique by address but not sorted.
    """

    state: dict[bytes, BundleAccount] = field(default_factory=dict)
    contracts: dict[bytes, Bytecode] = field(default_factory=dict)
    reverts: list[BlockReverts] = field(default_factory=list)

    @classmethod
    def from_changes(
        cls,
        state: Iterable[
            tuple[
                bytes,
                AccountInfo | None,
                AccountInfo | None,
                Mapping[int, tuple[int, int]],
            ]
        ],
        reverts: Iterable[
            Iterable[
                tuple[
                    bytes,
                    AccountInfoRevert | AccountInfo | None,
                    Iterable[tuple[int, int]],
                ]
            ]
        ],
        contracts: Iterable[tuple[bytes, Bytecode]],
    ) -> BundleState:
        """Build a bundle from original and present values.

        ``state`` items are ``(address, original, present, {slot: (original, present)})``.
        In ``reverts`` an account of ``None`` is left as is, an ``AccountInfo``
        is reverted to, and ``AccountInfoRevert.delete_it()`` removes it.
        """
        accounts = {
            address: BundleAccount(
                info=present,
                original_info=original,
                storage={
                    key: StorageSlot.new_changed(original_value, present_value)
                    for key, (original_value, present_value) in storage.items()
                },
                status=AccountStatus.CHANGED,
            )
            for address, original, present, storage in state
        }
        all_reverts = [
            [
                (
                    address,
                    AccountRevert(
                        account=_info_revert(account),
                        storage={
                            key: RevertToSlot.some(value) for key, value in storage
                        },
                        previous_status=AccountStatus.CHANGED,
                        wipe_storage=False,
                    ),
                )
                for address, account, storage in block_reverts
            ]
            for block_reverts in reverts
        ]
        return cls(state=accounts, contracts=dict(contracts), reverts=all_reverts)

    def __len__(self) -> int:
        """Number of changed accounts."""
        return len(self.state)

    def is_empty(self) -> bool:
        return len(self.state) == 0

    def account(self, address: bytes) -> BundleAccount | None:
        return self.state.get(address)

    def bytecode(self, code_hash: bytes) -> Bytecode | None:
        return self.contracts.get(code_hash)

    def apply_block_substate_and_create_reverts(
        self, transitions: TransitionState
    ) -> None:
        """Consume ``transitions``, updating the state and recording their reverts."""
        reverts: BlockReverts = []
        for address, transition in transitions.take().transitions.items():
            new_contract = transition.has_new_contract()
            if new_contract is not None:
                code_hash, bytecode = new_contract
                self.contracts[code_hash] = bytecode

            existing = self.state.get(address)
            if existing is not None:
                revert = existing.update_and_create_revert(transition)
            else:
                present = transition.present_bundle_account()
                revert = transition.create_revert()
                if revert is not None:
                    self.state[address] = present

            if revert is not None:
                reverts.append((address, revert))
        self.reverts.append(reverts)

    def take_sorted_plain_change_inner(self, omit_changed_check: bool) -> StateChangeset:
        """Empty the state and contracts and return them as a sorted changeset.

        With ``omit_changed_check`` every account and slot is included, not only
        those that differ from their original values.
        """
        accounts: list[tuple[bytes, AccountInfo | None]] = []
        storage: list[tuple[bytes, tuple[bool, list[tuple[int, int]]]]] = []

        for address, account in self.state.items():
            was_destroyed = account.was_destroyed()
            if omit_changed_check or account.is_info_changed():
                info = replace(account.info, code=None) if account.info else None
                accounts.append((address, info))

            if was_destroyed:
                changed = [
                    (key, slot.present_value)
                    for key, slot in account.storage.items()
                    if omit_changed_check or slot.present_value != 0
                ]
            else:
                changed = [
                    (key, slot.present_value)
                    for key, slot in account.storage.items()
                    if omit_changed_check or slot.is_changed()
                ]
            changed.sort(key=_by_key)
            storage.append((address, (was_destroyed, changed)))
        self.state = {}

        accounts.sort(key=_by_key)
        storage.sort(key=_by_key)
        contracts = sorted(self.contracts.items(), key=_by_key)
        self.contracts = {}
        return StateChangeset(accounts=accounts, storage=storage, contracts=contracts)

    def take_reverts(self) -> StateReverts:
        """Remove all reverts and return them, accounts sorted by address."""
        state_reverts = StateReverts()
        for block_reverts in self.reverts:
            accounts: list[tuple[bytes, AccountInfo | None]] = []
            storage: list[tuple[bytes, bool, list[tuple[int, int]]]] = []
            for address, revert in block_reverts:
                kind = revert.account.kind
                if kind is RevertKind.REVERT_TO:
                    accounts.append((address, revert.account.info))
                elif kind is RevertKind.DELETE_IT:
                    accounts.append((address, None))
                if revert.wipe_storage or revert.storage:
                    account_storage = sorted(
                        (
                            (key, slot.to_previous_value())
                            for key, slot in revert.storage.items()
                        ),
                        key=_by_key,
                    )
                    storage.append((address, revert.wipe_storage, account_storage))
            accounts.sort(key=_by_key)
            state_reverts.accounts.append(accounts)
            state_reverts.storage.append(storage)
        self.reverts = []
        return state_reverts

    def extend(self, other: BundleState) -> None:
        """Add a bundle that was built on top of this one."""
        for address, account in other.state.items():
            existing = self.state.get(address)
            if existing is not None:
                existing.extend(account)
            else:
                self.state[address] = account
        self.contracts.update(other.contracts)
        self.reverts.extend(other.reverts)

    def detach_lower_part_reverts(self, num_of_detachments: int) -> BundleState | None:
        """Split off the oldest ``num_of_detachments`` reverts into a new bundle.

        The returned bundle holds only reverts. Returns ``None`` for zero or
        for more reverts than there are.
        """
        if num_of_detachments == 0 or num_of_detachments > len(self.reverts):
            return None
        detached = self.reverts[:num_of_detachments]
        self.reverts = self.reverts[num_of_detachments:]
        return BundleState(reverts=detached)

    def revert(self, transition: int) -> None:
        """Undo the last ``transition`` applied transition states."""
        while transition > 0 and self.reverts:
            for address, account_revert in self.reverts.pop():
                account = self.state.get(address)
                if account is None:
                    raise KeyError(f"account {address.hex()} for revert should exist")
                if account.revert(account_revert):
                    del self.state[address]
            transition -= 1