"""patchforge CLI — Typer-based command-line interface.

Provides the ``patchforge`` command with subcommands for inspecting the
bundle catalog, validating configuration, feeding build artifacts to the
acceptor and recovering descriptor comments by hand.

All output uses Rich for formatted terminal display.
"""
