"""Watch-set of borrower addresses owned by the liquidation monitor."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator

from eth_utils import is_address, to_checksum_address

from ..errors import WatchListError


class WatchSource(str, Enum):
    LEDGER = "ledger"
    USER = "user"


class WatchSet:
    """Deduplicated, case-insensitive set of addresses tagged by source.

    Ledger-sourced members come from the ledger's borrower list and cannot
    be removed by the user. They leave the set once the ledger stops
    reporting them, unless the user added them as well.
    """

    def __init__(self) -> None:
        self._members: dict[str, tuple[str, WatchSource]] = {}
        self._user_added: set[str] = set()

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self._key(address) in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[str]:
        return (address for address, _ in self._members.values())

    def source_of(self, address: str) -> WatchSource | None:
        member = self._members.get(self._key(address))
        return member[1] if member else None

    def add(self, address: str) -> str:
        """Add a user-sourced address; returns its checksummed form."""
        if not isinstance(address, str) or not is_address(address):
            raise WatchListError(f"Invalid address: {address!r}")
        key = self._key(address)
        if key in self._members:
            raise WatchListError(f"Address {address} is already being watched")
        checksummed = to_checksum_address(address)
        self._members[key] = (checksummed, WatchSource.USER)
        self._user_added.add(key)
        return checksummed

    def remove(self, address: str) -> None:
        key = self._key(address)
        member = self._members.get(key)
        if member is None:
            raise WatchListError(f"Address {address} is not being watched")
        if member[1] is WatchSource.LEDGER:
            raise WatchListError(
                f"Address {address} is an active ledger borrower and cannot be removed"
            )
        del self._members[key]
        self._user_added.discard(key)

    def merge_ledger(self, addresses: Iterable[str]) -> int:
        """Replace the ledger-sourced membership with ``addresses``.

        User-added members reported by the ledger are promoted; ledger
        members no longer reported are dropped, or revert to USER when the
        user added them. Returns the number of new members.
        """
        current = {self._key(a): to_checksum_address(a) for a in addresses}

        for key, (checksummed, source) in list(self._members.items()):
            if source is WatchSource.LEDGER and key not in current:
                if key in self._user_added:
                    self._members[key] = (checksummed, WatchSource.USER)
                else:
                    del self._members[key]

        added = 0
        for key, checksummed in current.items():
            if key not in self._members:
                added += 1
            self._members[key] = (checksummed, WatchSource.LEDGER)
        return added
