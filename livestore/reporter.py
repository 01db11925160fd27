from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from livestore.domain.models import Contact


def contacts_table(contacts: Sequence[Contact], title: str = "Contacts") -> Table:
    """Build a rich table listing contacts in the given order."""
    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=f"{len(contacts)} contact(s), sorted by name",
    )
    table.add_column("ID", justify="right", style="magenta", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Occupation", style="green")
    for contact in contacts:
        contact_id = str(contact.id) if contact.id is not None else "-"
        table.add_row(contact_id, contact.name, contact.occupation)
    return table


def print_contacts(
    contacts: Sequence[Contact],
    title: str = "Contacts",
    console: Optional[Console] = None,
) -> None:
    """Render contacts as a rich table."""
    console = console or Console()
    if not contacts:
        console.print(f"[yellow]{title}: no contacts stored.[/yellow]")
        return
    console.print(contacts_table(contacts, title=title))
