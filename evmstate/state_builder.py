"""Builder that assembles a ``State`` with the chosen options."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .bundle_state import BundleState
from .cache import CacheState
from .emptydb import EmptyDB
from .state import State
from .transition_state import TransitionState


@dataclass(frozen=True)
class StateBuilder:
    """Options for a new ``State``; each option method returns a new builder.

    By default state clearing (EIP-161) is on, transitions are recorded and
    the database is an ``EmptyDB``.
    """

    database: Any = field(default_factory=EmptyDB)
    has_state_clear: bool = True
    bundle_prestate: BundleState | None = None
    cache_prestate: CacheState | None = None
    skip_bundle_update: bool = False
    background_transition_merge: bool = False

    def with_database(self, database: Any) -> StateBuilder:
        """Use ``database`` to load accounts, storage, code and block hashes."""
        return replace(self, database=database)

    def without_state_clear(self) -> StateBuilder:
        """Disable EIP-161 state clearing, as needed before Spurious Dragon."""
        return replace(self, has_state_clear=False)

    def with_bundle_prestate(self, bundle: BundleState) -> StateBuilder:
        """Start from ``bundle`` as an extra layer between the cache and the database."""
        return replace(self, bundle_prestate=bundle)

    def without_bundle_update(self) -> StateBuilder:
        """Record no transitions and never update the bundle state."""
        return replace(self, skip_bundle_update=True)

    def with_cached_prestate(self, cache: CacheState) -> StateBuilder:
        """Start from ``cache``; the bundle prestate and state-clear option are ignored."""
        return replace(self, cache_prestate=cache)

    def with_background_transition_merge(self) -> StateBuilder:
        """Ask for transitions to be merged into the bundle in the background."""
        return replace(self, background_transition_merge=True)

    def build(self) -> State:
        """Create the ``State``."""
        if self.cache_prestate is not None:
            cache = self.cache_prestate
            bundle = None
            use_preloaded_bundle = False
        else:
            cache = CacheState(has_state_clear=self.has_state_clear)
            bundle = self.bundle_prestate
            use_preloaded_bundle = bundle is not None
        return State(
            database=self.database,
            cache=cache,
            transition_state=None if self.skip_bundle_update else TransitionState(),
            bundle_state=bundle,
            use_preloaded_bundle=use_preloaded_bundle,
        )