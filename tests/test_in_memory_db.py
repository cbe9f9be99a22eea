import pytest

from evmstate.account import (
    KECCAK_EMPTY,
    ZERO_HASH,
    Account,
    AccountInfo,
    Bytecode,
    StorageSlot,
    keccak256,
)
from evmstate.emptydb import EmptyDB
from evmstate.in_memory_db import (
    AccountState,
    BenchmarkDB,
    CacheDB,
    DbAccount,
    in_memory_db,
)

ACCOUNT = bytes(19) + bytes([42])


def test_insert_account_storage():
    nonce = 42
    init_state = CacheDB(EmptyDB())
    init_state.insert_account_info(ACCOUNT, AccountInfo(nonce=nonce))

    key, value = 123, 456
    new_state = CacheDB(init_state)
    new_state.insert_account_storage(ACCOUNT, key, value)

    assert new_state.basic(ACCOUNT).nonce == nonce
    assert new_state.storage(ACCOUNT, key) == value


def test_replace_account_storage():
    nonce = 42
    init_state = CacheDB(EmptyDB())
    init_state.insert_account_info(ACCOUNT, AccountInfo(nonce=nonce))

    key0, value0 = 123, 456
    key1, value1 = 789, 999
    init_state.insert_account_storage(ACCOUNT, key0, value0)

    new_state = CacheDB(init_state)
    new_state.replace_account_storage(ACCOUNT, {key1: value1})

    assert new_state.basic(ACCOUNT).nonce == nonce
    assert new_state.storage(ACCOUNT, key0) == 0
    assert new_state.storage(ACCOUNT, key1) == value1


def test_initial_contracts_hold_empty_code():
    db = CacheDB(EmptyDB())
    assert db.code_by_hash(KECCAK_EMPTY) == Bytecode()
    assert db.code_by_hash(ZERO_HASH) == Bytecode()


def test_insert_contract_stores_code_by_hash():
    db = CacheDB(EmptyDB())
    code = Bytecode(b"\x60\x00")
    info = AccountInfo(balance=1, code=code, code_hash=ZERO_HASH)
    db.insert_contract(info)
    assert info.code_hash == keccak256(b"\x60\x00")
    assert db.contracts[info.code_hash] == code


def test_insert_contract_zero_hash_becomes_keccak_empty():
    db = CacheDB(EmptyDB())
    info = AccountInfo(code_hash=ZERO_HASH)
    db.insert_contract(info)
    assert info.code_hash == KECCAK_EMPTY


def test_missing_account_is_not_existing():
    db = CacheDB(EmptyDB())
    assert db.basic(ACCOUNT) is None
    assert db.accounts[ACCOUNT].account_state is AccountState.NOT_EXISTING
    assert db.storage(ACCOUNT, 5) == 0


def test_storage_of_unloaded_missing_account():
    db = CacheDB(EmptyDB())
    assert db.storage(ACCOUNT, 1) == 0
    assert db.accounts[ACCOUNT].info_if_exists() is None


def test_commit_skips_untouched():
    db = CacheDB(EmptyDB())
    db.commit({ACCOUNT: Account(info=AccountInfo(balance=5))})
    assert ACCOUNT not in db.accounts


def test_commit_touched_account():
    db = CacheDB(EmptyDB())
    account = Account(
        info=AccountInfo(balance=5),
        storage={1: StorageSlot.new_changed(0, 9)},
        touched=True,
    )
    db.commit({ACCOUNT: account})
    cached = db.accounts[ACCOUNT]
    assert cached.account_state is AccountState.TOUCHED
    assert db.basic(ACCOUNT).balance == 5
    assert db.storage(ACCOUNT, 1) == 9


def test_commit_selfdestructed():
    db = CacheDB(EmptyDB())
    db.insert_account_info(ACCOUNT, AccountInfo(balance=5))
    db.insert_account_storage(ACCOUNT, 1, 2)
    db.commit({ACCOUNT: Account(touched=True, selfdestructed=True)})
    assert db.basic(ACCOUNT) is None
    assert db.storage(ACCOUNT, 1) == 0


def test_commit_created_clears_storage():
    db = CacheDB(EmptyDB())
    db.insert_account_info(ACCOUNT, AccountInfo(balance=5))
    db.insert_account_storage(ACCOUNT, 1, 2)
    account = Account(
        info=AccountInfo(balance=6),
        storage={3: StorageSlot.new_changed(0, 4)},
        touched=True,
        created=True,
    )
    db.commit({ACCOUNT: account})
    cached = db.accounts[ACCOUNT]
    assert cached.account_state.is_storage_cleared()
    assert cached.storage == {3: 4}


def test_commit_keeps_storage_cleared_state():
    db = CacheDB(EmptyDB())
    db.replace_account_storage(ACCOUNT, {})
    db.commit({ACCOUNT: Account(info=AccountInfo(balance=1), touched=True)})
    assert db.accounts[ACCOUNT].account_state is AccountState.STORAGE_CLEARED


def test_in_memory_db_block_hash_is_keccak_of_number():
    db = in_memory_db()
    assert db.block_hash(7) == keccak256((7).to_bytes(32, "big"))
    assert db.block_hashes[7] == db.block_hash(7)


def test_ref_reads_fall_through_without_caching():
    inner = CacheDB(EmptyDB())
    inner.insert_account_info(ACCOUNT, AccountInfo(nonce=3))
    outer = CacheDB(inner)
    assert outer.basic_ref(ACCOUNT).nonce == 3
    assert ACCOUNT not in outer.accounts
    assert outer.storage_ref(ACCOUNT, 1) == 0
    assert outer.code_by_hash_ref(KECCAK_EMPTY) == Bytecode()


def test_db_account_from_info():
    assert DbAccount.from_info(None).account_state is AccountState.NOT_EXISTING
    account = DbAccount.from_info(AccountInfo(nonce=2))
    assert account.account_state is AccountState.NONE
    assert account.info_if_exists().nonce == 2


def test_account_state_is_storage_cleared():
    assert AccountState.STORAGE_CLEARED.is_storage_cleared() is True
    assert AccountState.TOUCHED.is_storage_cleared() is False


def test_benchmark_db():
    code = Bytecode(b"\x00")
    db = BenchmarkDB.new_bytecode(code)
    zero = db.basic(bytes(20))
    assert zero.nonce == 1
    assert zero.code == code
    assert zero.code_hash == code.hash_slow()
    one = db.basic(bytes(19) + b"\x01")
    assert one.nonce == 0
    assert one.code_hash == KECCAK_EMPTY
    assert db.basic(b"\x05" * 20) is None
    assert db.block_hash(1) == ZERO_HASH
    assert db.storage(bytes(20), 1) == 0


@pytest.mark.parametrize("number", [-1, 1 << 256])
def test_block_hash_out_of_range(number):
    with pytest.raises(ValueError):
        in_memory_db().block_hash(number)