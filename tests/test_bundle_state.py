import pytest

from evmstate.account import KECCAK_EMPTY, AccountInfo, Bytecode, StorageSlot
from evmstate.account_status import AccountStatus
from evmstate.bundle_account import BundleAccount
from evmstate.bundle_state import BundleState
from evmstate.reverts import AccountInfoRevert, AccountRevert, RevertToSlot
from evmstate.transition_account import TransitionAccount
from evmstate.transition_state import TransitionState

ADDRESS = bytes([0x01] * 20)
OTHER = bytes([0x02] * 20)


def _acc1():
    return AccountInfo(balance=10, nonce=1, code_hash=KECCAK_EMPTY, code=None)


def _created_bundle():
    bundle = BundleState()
    transition = TransitionAccount(
        info=_acc1(),
        status=AccountStatus.IN_MEMORY_CHANGE,
        previous_info=None,
        previous_status=AccountStatus.LOADED_NOT_EXISTING,
        storage={},
        storage_was_destroyed=False,
    )
    bundle.apply_block_substate_and_create_reverts(
        TransitionState.with_capacity(ADDRESS, transition)
    )
    return bundle


def test_transition_all_states():
    bundle = _created_bundle()
    account = bundle.account(ADDRESS)
    assert account.status is AccountStatus.IN_MEMORY_CHANGE
    assert account.info == _acc1()
    assert account.original_info is None
    assert bundle.reverts == [
        [
            (
                ADDRESS,
                AccountRevert(
                    account=AccountInfoRevert.delete_it(),
                    storage={},
                    previous_status=AccountStatus.LOADED_NOT_EXISTING,
                    wipe_storage=False,
                ),
            )
        ]
    ]


def test_len_and_is_empty():
    assert BundleState().is_empty()
    bundle = _created_bundle()
    assert not bundle.is_empty()
    assert len(bundle) == 1


def test_revert_removes_created_account():
    bundle = _created_bundle()
    bundle.revert(1)
    assert bundle.state == {}
    assert bundle.reverts == []


def test_revert_zero_is_noop():
    bundle = _created_bundle()
    bundle.revert(0)
    assert len(bundle.reverts) == 1
    assert ADDRESS in bundle.state


def test_revert_missing_account_raises():
    bundle = BundleState(reverts=[[(ADDRESS, AccountRevert())]])
    with pytest.raises(KeyError):
        bundle.revert(1)


def test_apply_records_new_contract():
    code = Bytecode(b"\x60\x00")
    info = AccountInfo(balance=1, nonce=1, code_hash=code.hash_slow(), code=code)
    transition = TransitionAccount(
        info=info,
        status=AccountStatus.IN_MEMORY_CHANGE,
        previous_status=AccountStatus.LOADED_NOT_EXISTING,
    )
    bundle = BundleState()
    bundle.apply_block_substate_and_create_reverts(
        TransitionState.with_capacity(ADDRESS, transition)
    )
    assert bundle.bytecode(code.hash_slow()) == code
    assert bundle.bytecode(KECCAK_EMPTY) is None


def test_apply_consumes_transition_state():
    transitions = TransitionState.with_capacity(
        ADDRESS,
        TransitionAccount(
            info=_acc1(),
            status=AccountStatus.IN_MEMORY_CHANGE,
            previous_status=AccountStatus.LOADED_NOT_EXISTING,
        ),
    )
    bundle = BundleState()
    bundle.apply_block_substate_and_create_reverts(transitions)
    assert transitions.transitions == {}


def test_from_changes_builds_state_and_reverts():
    original = AccountInfo(balance=1)
    present = AccountInfo(balance=2)
    bundle = BundleState.from_changes(
        [(ADDRESS, original, present, {5: (1, 3)})],
        [[(ADDRESS, original, [(5, 1)]), (OTHER, AccountInfoRevert.delete_it(), [])],
         [(ADDRESS, None, [])]],
        [(KECCAK_EMPTY, Bytecode())],
    )
    account = bundle.account(ADDRESS)
    assert account.status is AccountStatus.CHANGED
    assert account.storage == {5: StorageSlot(1, 3)}
    assert account.original_info == original
    assert account.info == present
    first = dict(bundle.reverts[0])
    assert first[ADDRESS].account == AccountInfoRevert.revert_to(original)
    assert first[ADDRESS].storage == {5: RevertToSlot.some(1)}
    assert first[OTHER].account == AccountInfoRevert.delete_it()
    assert bundle.reverts[1][0][1].account == AccountInfoRevert.do_nothing()
    assert bundle.bytecode(KECCAK_EMPTY) == Bytecode()


def test_from_changes_revert_restores_values():
    original = AccountInfo(balance=1)
    present = AccountInfo(balance=2)
    bundle = BundleState.from_changes(
        [(ADDRESS, original, present, {5: (1, 3)})],
        [[(ADDRESS, original, [(5, 1)])]],
        [],
    )
    bundle.revert(1)
    account = bundle.account(ADDRESS)
    assert account.info == original
    assert account.storage_slot(5) == 1


def test_take_sorted_plain_change_inner():
    code = Bytecode(b"\x01")
    info = AccountInfo(balance=2, code_hash=code.hash_slow(), code=code)
    bundle = BundleState(
        state={
            OTHER: BundleAccount(
                info=info,
                original_info=AccountInfo(balance=1),
                storage={9: StorageSlot(1, 2), 3: StorageSlot(4, 4), 1: StorageSlot(0, 5)},
                status=AccountStatus.CHANGED,
            ),
            ADDRESS: BundleAccount(
                info=AccountInfo(balance=1),
                original_info=AccountInfo(balance=1),
                storage={},
                status=AccountStatus.CHANGED,
            ),
        },
        contracts={OTHER + bytes(12): code, ADDRESS + bytes(12): Bytecode()},
    )
    changeset = bundle.take_sorted_plain_change_inner(False)
    assert [address for address, _ in changeset.accounts] == [OTHER]
    assert changeset.accounts[0][1].code is None
    assert changeset.accounts[0][1] == info
    assert changeset.storage == [
        (ADDRESS, (False, [])),
        (OTHER, (False, [(1, 5), (9, 2)])),
    ]
    assert [key for key, _ in changeset.contracts] == [
        ADDRESS + bytes(12),
        OTHER + bytes(12),
    ]
    assert bundle.state == {}
    assert bundle.contracts == {}


def test_take_sorted_plain_change_omit_check_and_destroyed():
    bundle = BundleState(
        state={
            ADDRESS: BundleAccount(
                info=None,
                original_info=None,
                storage={2: StorageSlot(0, 7), 1: StorageSlot(5, 0)},
                status=AccountStatus.DESTROYED,
            )
        }
    )
    copy = BundleState(
        state={
            ADDRESS: BundleAccount(
                storage={2: StorageSlot(0, 7), 1: StorageSlot(5, 0)},
                status=AccountStatus.DESTROYED,
            )
        }
    )
    changeset = bundle.take_sorted_plain_change_inner(False)
    assert changeset.accounts == []
    assert changeset.storage == [(ADDRESS, (True, [(2, 7)]))]
    full = copy.take_sorted_plain_change_inner(True)
    assert full.accounts == [(ADDRESS, None)]
    assert full.storage == [(ADDRESS, (True, [(1, 0), (2, 7)]))]


def test_take_reverts_sorted_and_cleared():
    info = AccountInfo(balance=3)
    bundle = BundleState(
        reverts=[
            [
                (OTHER, AccountRevert(account=AccountInfoRevert.revert_to(info))),
                (
                    ADDRESS,
                    AccountRevert(
                        account=AccountInfoRevert.delete_it(),
                        storage={8: RevertToSlot.destroyed(), 2: RevertToSlot.some(6)},
                    ),
                ),
            ],
            [(ADDRESS, AccountRevert(wipe_storage=True))],
        ]
    )
    reverts = bundle.take_reverts()
    assert reverts.accounts == [[(ADDRESS, None), (OTHER, info)], []]
    assert reverts.storage == [
        [(ADDRESS, False, [(2, 6), (8, 0)])],
        [(ADDRESS, True, [])],
    ]
    assert bundle.reverts == []


def test_extend_merges_state_contracts_and_reverts():
    base = _created_bundle()
    top = BundleState(
        state={
            ADDRESS: BundleAccount(
                info=AccountInfo(balance=20),
                storage={1: StorageSlot(0, 2)},
                status=AccountStatus.CHANGED,
            ),
            OTHER: BundleAccount(status=AccountStatus.DESTROYED),
        },
        contracts={KECCAK_EMPTY: Bytecode()},
        reverts=[[]],
    )
    base.extend(top)
    assert base.account(ADDRESS).info == AccountInfo(balance=20)
    assert base.account(ADDRESS).status is AccountStatus.CHANGED
    assert base.account(ADDRESS).original_info is None
    assert base.account(OTHER).status is AccountStatus.DESTROYED
    assert KECCAK_EMPTY in base.contracts
    assert len(base.reverts) == 2


def test_detach_lower_part_reverts():
    first = [(ADDRESS, AccountRevert())]
    second = [(OTHER, AccountRevert())]
    bundle = BundleState(reverts=[first, second])
    assert bundle.detach_lower_part_reverts(0) is None
    assert bundle.detach_lower_part_reverts(3) is None
    detached = bundle.detach_lower_part_reverts(1)
    assert detached.reverts == [first]
    assert detached.state == {}
    assert bundle.reverts == [second]