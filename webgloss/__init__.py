"""Translate the text of HTML pages into English with an LLM."""

__version__ = "0.1.0"
