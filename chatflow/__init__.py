"""Chatflow Studio: authoring core for conversational chat-bot flows."""

__version__ = "0.3.0"
