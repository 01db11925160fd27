from __future__ import annotations

import sys
import threading
from typing import List

import typer
from pydantic import ValidationError
from rich.console import Console

from livestore.config import get_settings
from livestore.database import ContactDatabase, DatabaseHolder
from livestore.domain.models import Contact
from livestore.infrastructure.memory import InMemoryEngine
from livestore.observable.lifecycle import ObserverContext
from livestore.reporter import print_contacts
from livestore.repository import WriteExecutor
from livestore.utils.logging import configure_logging
from livestore.viewmodel import ContactViewModel

app = typer.Typer(help="livestore contact store CLI.")
console = Console()

WAIT_SECONDS = 10.0


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _shared_database() -> ContactDatabase:
    """
    Database for commands whose effect must outlive this process.

    An in-memory database is only usable when one already exists in the
    process; a fresh one would be empty and lost on exit.
    """
    if get_settings().backend == "memory" and DatabaseHolder.peek() is None:
        typer.echo(
            "The memory backend does not keep contacts between commands. "
            "Set LIVESTORE_BACKEND=postgres, or try `livestore demo`.",
            err=True,
        )
        raise typer.Exit(code=1)
    return DatabaseHolder.get()


def _first_snapshot(model: ContactViewModel) -> List[Contact]:
    """Observe the contact list until the first value is delivered."""
    received: List[List[Contact]] = []
    delivered = threading.Event()
    context = ObserverContext("cli")

    def on_change(contacts: List[Contact]) -> None:
        received.append(contacts)
        delivered.set()

    model.all_contacts.subscribe(context, on_change)
    context.activate()
    try:
        if not delivered.wait(WAIT_SECONDS):
            raise typer.Exit(code=1)
    finally:
        context.destroy()
    return received[-1]


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    storage = (
        f"postgres {settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        if settings.backend == "postgres"
        else "memory"
    )
    typer.echo(
        f"backend={storage} | write_workers={settings.write_workers} "
        f"allow_main_thread={settings.allow_main_thread_queries} "
        f"prepopulate={settings.prepopulate}"
    )


@app.command()
def add(
    name: str = typer.Option(..., "--name", "-n", help="Contact name."),
    occupation: str = typer.Option(..., "--occupation", "-o", help="Contact occupation."),
) -> None:
    """
    Store one contact. Adding an existing name/occupation pair is a no-op.
    """
    _setup()
    try:
        contact = Contact(name=name, occupation=occupation)
    except ValidationError as exc:
        typer.echo(f"Invalid contact: {exc.errors()[0]['msg']}", err=True)
        raise typer.Exit(code=2)
    model = ContactViewModel(_shared_database().repository())
    model.insert(contact).result(timeout=WAIT_SECONDS)
    typer.echo(f"Stored {contact.name} ({contact.occupation}).")


@app.command("list")
def list_contacts() -> None:
    """
    Print all contacts sorted by name.
    """
    _setup()
    model = ContactViewModel(_shared_database().repository())
    print_contacts(_first_snapshot(model), console=console)


@app.command()
def clear() -> None:
    """
    Delete every stored contact.
    """
    _setup()
    model = ContactViewModel(_shared_database().repository())
    model.delete_all().result(timeout=WAIT_SECONDS)
    typer.echo("All contacts deleted.")


@app.command()
def demo() -> None:
    """
    Walk through observation with an in-memory database.
    """
    _setup()
    database = ContactDatabase(InMemoryEngine(), WriteExecutor(max_workers=4))
    model = ContactViewModel(database.repository())
    screen = ObserverContext("demo-screen")

    def render(contacts: List[Contact]) -> None:
        print_contacts(contacts, title=f"Delivered v{model.all_contacts.version}", console=console)

    try:
        model.all_contacts.subscribe(screen, render)
        screen.activate()
        for contact in (
            Contact(name="Grace Hopper", occupation="Computer Scientist"),
            Contact(name="Ada Lovelace", occupation="Mathematician"),
            Contact(name="Ada Lovelace", occupation="Mathematician"),
        ):
            model.insert(contact).result(timeout=WAIT_SECONDS)
            database.flush(WAIT_SECONDS)

        console.print("[dim]Screen paused; inserting while inactive.[/dim]")
        screen.deactivate()
        model.insert(Contact(name="Alan Turing", occupation="Logician")).result(timeout=WAIT_SECONDS)
        model.insert(Contact(name="Edsger Dijkstra", occupation="Engineer")).result(timeout=WAIT_SECONDS)
        console.print("[dim]Screen resumed; only the latest list is delivered.[/dim]")
        screen.activate()
        database.flush(WAIT_SECONDS)

        model.delete_all().result(timeout=WAIT_SECONDS)
        database.flush(WAIT_SECONDS)
    finally:
        screen.destroy()
        model.clear()
        database.close()


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
