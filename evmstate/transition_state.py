"""Transitions of all accounts touched since the last merge."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .transition_account import TransitionAccount


@dataclass
class TransitionState:
    """Map from address to the accumulated transition of that account."""

    transitions: dict[bytes, TransitionAccount] = field(default_factory=dict)

    @classmethod
    def with_capacity(
        cls, address: bytes, transition: TransitionAccount
    ) -> TransitionState:
        """A transition state holding one transition."""
        return cls({address: transition})

    def take(self) -> TransitionState:
        """Return the collected transitions and leave this state empty."""
        taken = TransitionState(self.transitions)
        self.transitions = {}
        return taken

    def add_transitions(
        self, transitions: Iterable[tuple[bytes, TransitionAccount]]
    ) -> None:
        """Merge transitions in, updating those already present."""
        for address, account in transitions:
            existing = self.transitions.get(address)
            if existing is None:
                self.transitions[address] = account
            else:
                existing.update(account)