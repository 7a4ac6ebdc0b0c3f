"""
Command-Line Interface Layer.

The Typer application, Rich console formatting and progress display.
"""
