"""Account state caching, block transitions, bundle changesets and reverts for EVM execution."""

__version__ = "0.1.0"

__all__ = [
    "account",
    "account_status",
    "bundle_account",
    "bundle_state",
    "cache",
    "cache_account",
    "changes",
    "emptydb",
    "in_memory_db",
    "reverts",
    "state",
    "state_builder",
    "transition_account",
    "transition_state",
]