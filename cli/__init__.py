"""Command line entry points for the language tutor."""
