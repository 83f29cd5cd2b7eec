"""httpsource CLI — Typer-based command-line interface.

Provides the ``httpsource`` command with subcommands for declaring
sources and credentials, reconciling them once or continuously, and
inspecting declarations and artifacts.

All output uses Rich for formatted terminal display.
"""
