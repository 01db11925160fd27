"""
Consumer-facing holders that survive individual observer contexts.

A view model outlives the contexts that observe it (for instance a screen
that is recreated); it is cleared once its owner goes away for good.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import List

from livestore.domain.models import Contact
from livestore.observable.live_data import LiveData
from livestore.repository import ContactRepository


class ViewModel:
    def __init__(self) -> None:
        self._cleared = False

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def clear(self) -> None:
        if not self._cleared:
            self._cleared = True
            self.on_cleared()

    def on_cleared(self) -> None:
        """Hook for releasing resources; called once by `clear`."""

    def _ensure_not_cleared(self) -> None:
        if self._cleared:
            raise RuntimeError(f"{type(self).__name__} has been cleared")


class ContactViewModel(ViewModel):
    """Exposes the contact list and write operations to observers."""

    def __init__(self, repository: ContactRepository) -> None:
        super().__init__()
        self._repository = repository
        self.all_contacts: LiveData[List[Contact]] = repository.all_contacts

    def insert(self, contact: Contact) -> "Future[None]":
        self._ensure_not_cleared()
        return self._repository.insert(contact)

    def delete_all(self) -> "Future[None]":
        self._ensure_not_cleared()
        return self._repository.delete_all()


__all__ = ["ContactViewModel", "ViewModel"]
