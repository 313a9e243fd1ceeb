"""
CLI: ``autocommit credentials``: owner access tokens.
"""

from __future__ import annotations

import typer

from autocommit.cli.utils import make_context, output_item
from autocommit.repositories import CredentialRepository

app = typer.Typer(no_args_is_help=True)


@app.command("set")
def set_token(
    owner: str = typer.Argument(..., help="Owner (account) id"),
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="Provider access token"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Store an access token; clears any pending re-auth flag."""
    _, conn = make_context(database)
    CredentialRepository(conn).set_token(owner, token)
    output_item({"owner": owner, "stored": True}, as_json=json_out, title="Credential Stored")


@app.command("disconnect")
def disconnect(
    owner: str = typer.Argument(..., help="Owner (account) id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Delete the owner's token and stop their active rules."""
    _, conn = make_context(database)
    stopped = CredentialRepository(conn).disconnect(owner)
    output_item({"owner": owner, "rules_stopped": stopped}, as_json=json_out, title="Disconnected")
