"""WhatsApp to LLM chat relay with optional voice-note replies."""

__version__ = "0.1.0"
