"""verifiedindex CLI — Typer-based command-line interface.

Provides the ``verifiedindex`` command with subcommands for regenerating the
index, generating CI workflows and inspecting the resolved settings.

All output uses Rich for formatted terminal display.
"""
