# evmstate

In-memory account state for EVM execution. The package keeps a cache of
accounts loaded from a backing database. It turns the account changes of each
transaction into account transitions, merges those transitions into a bundle
for each block, and produces sorted changesets and reverts that can be written
to a database.

Addresses are 20-byte `bytes` values. Hashes are 32-byte `bytes` values.
Balances, nonces, storage slots and storage values are Python `int`s.

## Installation

```
pip install .
```

To run the test suite, install the test extra:

```
pip install ".[test]"
pytest
```

## Modules

- `evmstate.account_status`: `AccountStatus`, the lifecycle of an account
  held in memory (loaded, changed, destroyed and so on). Its predicates are
  `not_modified`, `was_destroyed`, `storage_known` and
  `modified_but_not_destroyed`.
- `evmstate.account`: the account data types `AccountInfo`, `Bytecode`,
  `StorageSlot`, `Account` (execution output with touched, selfdestructed and
  created flags) and `PlainAccount`. It also provides `keccak256` and the
  constants `KECCAK_EMPTY`, `ZERO_HASH` and `ZERO_ADDRESS`.
- `evmstate.cache_account` and `evmstate.cache`: `CacheAccount` and
  `CacheState`. These form the cache that reads are served from.
  `CacheState.apply_evm_state` applies a mapping of address to `Account` and
  returns a list of `(address, TransitionAccount)` pairs.
- `evmstate.transition_account` and `evmstate.transition_state`:
  `TransitionAccount` holds the accumulated change of one account.
  `TransitionState` collects these changes between merges.
- `evmstate.bundle_account` and `evmstate.bundle_state`: `BundleAccount` holds
  an account's original and present values. `BundleState` holds those
  accounts, the contracts that were created, and one list of `AccountRevert`
  entries per applied transition state. A transition between incompatible
  statuses raises `InvalidTransitionError`.
- `evmstate.reverts`: `AccountRevert`, `AccountInfoRevert` and `RevertToSlot`.
- `evmstate.changes`: `StateChangeset` and `StateReverts`, the sorted output
  ready to store.
- `evmstate.state` and `evmstate.state_builder`: `State` is a database
  front-end that ties the cache, the transitions and the bundle together.
  `StateBuilder` configures it.
- `evmstate.emptydb` and `evmstate.in_memory_db`: the simple databases
  `EmptyDB`, `CacheDB`, `BenchmarkDB` and `in_memory_db()`.

## Block state example

```python
from evmstate.account import AccountInfo
from evmstate.state_builder import StateBuilder

state = StateBuilder().build()

alice = bytes(19) + b"\x01"
state.insert_account(alice, AccountInfo(balance=10, nonce=1))

state.increment_balances([(alice, 5)])
state.merge_transitions()

bundle = state.take_bundle()
changes = bundle.take_sorted_plain_change_inner(False)
print(changes.accounts)   # [(alice, AccountInfo(balance=15, nonce=1, ...))]
```

To commit execution output, use `State.commit`. It takes a mapping from
address to `Account`, and every touched account in it must already be in the
cache.

Other `BundleState` operations:

- `take_reverts` returns the sorted reverts of every merge.
- `revert(n)` rolls the bundle back by `n` merges.
- `extend` adds a bundle that was built on top of this one.
- `detach_lower_part_reverts` splits off the oldest reverts.

`BundleState.from_changes` builds a bundle directly from original and present
values.

## In-memory database

```python
from evmstate.account import AccountInfo
from evmstate.in_memory_db import in_memory_db

db = in_memory_db()
address = bytes(19) + b"\x2a"
db.insert_account_info(address, AccountInfo(nonce=42))
db.insert_account_storage(address, 123, 456)
assert db.storage(address, 123) == 456
```

`CacheDB` wraps any object that has `basic_ref`, `code_by_hash_ref`,
`storage_ref` and `block_hash_ref`. This includes `EmptyDB` and another
`CacheDB`. `CacheDB` never writes to the object it wraps. Use `commit` to
apply execution output, and `replace_account_storage` to replace an account's
storage wholesale.

## What this package does not do

- It does not execute transactions or bytecode. The `Account` values passed
  to `State.commit`, `CacheState.apply_evm_state` or `CacheDB.commit` must
  come from an executor outside this package.
- It has no database backed by disk or by a remote node. The only databases
  provided are the in-memory ones listed above.
- `StateBuilder.with_background_transition_merge` only records the option.
  Transitions are always merged when `State.merge_transitions` is called.
- A bundle set with `StateBuilder.with_bundle_prestate` is kept as the
  state's `bundle_state`, and `use_preloaded_bundle` is set. Reads do not
  consult that bundle.
- `EmptyDB.block_hash` always returns the Keccak-256 hash of the block
  number, whatever the value of `keccak_block_hash`.