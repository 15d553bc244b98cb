"""llmd: talk to your terminal.

Translates natural-language requests into shell commands with an LLM,
checks them, and asks before running anything.
"""

__version__ = "0.3.0"
