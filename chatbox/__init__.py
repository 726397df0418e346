"""Chatbox: streaming chat relay for Ollama and its client library."""

__version__ = "0.1.0"
