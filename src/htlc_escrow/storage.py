"""Escrow, user-index and config stores over a single `EscrowState`.

Mutations go through `Storage.transaction()`, which hands out a deep copy of
the committed state and swaps it in only when the block completes without
raising. A failed call therefore never leaves a partial write behind.
"""

from __future__ import annotations

from contextlib import contextmanager
from copy import deepcopy
from typing import Iterator, Optional, Tuple

from .errors import ErrorCode, EscrowError
from .types import Config, Escrow, EscrowState, UserEscrows


class EscrowStore:
    def __init__(self, escrows: dict[str, Escrow]):
        self._escrows = escrows

    def get(self, escrow_id: str) -> Optional[Escrow]:
        return self._escrows.get(escrow_id)

    def load(self, escrow_id: str) -> Escrow:
        escrow = self._escrows.get(escrow_id)
        if escrow is None:
            raise EscrowError(ErrorCode.ESCROW_NOT_FOUND, "escrow not found")
        return escrow

    def has(self, escrow_id: str) -> bool:
        return escrow_id in self._escrows

    def save(self, escrow: Escrow) -> None:
        self._escrows[escrow.hashlock] = escrow

    def range(self) -> Iterator[Tuple[str, Escrow]]:
        """All escrows in ascending id order."""
        for escrow_id in sorted(self._escrows):
            yield escrow_id, self._escrows[escrow_id]

    def __len__(self) -> int:
        return len(self._escrows)


class UserIndex:
    def __init__(self, entries: dict[str, UserEscrows]):
        self._entries = entries

    def load(self, account: str) -> UserEscrows:
        entry = self._entries.get(account)
        if entry is None:
            return UserEscrows()
        return entry

    def append(self, account: str, escrow_id: str) -> None:
        entry = self._entries.setdefault(account, UserEscrows())
        entry.escrow_ids.append(escrow_id)
        entry.count += 1


class ConfigStore:
    def __init__(self, state: EscrowState):
        self._state = state

    def load(self) -> Config:
        if self._state.config is None:
            raise EscrowError(ErrorCode.NOT_INSTANTIATED, "engine not instantiated")
        return self._state.config

    def save(self, config: Config) -> None:
        self._state.config = config

    def is_initialized(self) -> bool:
        return self._state.config is not None

    @property
    def admin(self) -> Optional[str]:
        return self._state.admin

    @admin.setter
    def admin(self, account: str) -> None:
        self._state.admin = account


class Storage:
    def __init__(self, state: Optional[EscrowState] = None):
        self.state = state if state is not None else EscrowState()

    @property
    def escrows(self) -> EscrowStore:
        return EscrowStore(self.state.escrows)

    @property
    def user_index(self) -> UserIndex:
        return UserIndex(self.state.user_escrows)

    @property
    def config(self) -> ConfigStore:
        return ConfigStore(self.state)

    @contextmanager
    def transaction(self) -> Iterator["Storage"]:
        working = Storage(deepcopy(self.state))
        yield working
        self.state = working.state

    def reset(self, state: Optional[EscrowState] = None) -> None:
        self.state = state if state is not None else EscrowState()
