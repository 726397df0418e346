"""
Boundary layer for external system integrations.

Handles all interactions with external systems (the chat state database, the Ollama server).
Provides adapters and clients for infrastructure dependencies.
"""
