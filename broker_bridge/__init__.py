"""Bridge between the LINE Messaging API webhook and a conversational-AI broker."""

__version__ = "0.1.0"
