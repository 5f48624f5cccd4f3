"""fastpath - local intent routing in front of an LLM."""

__version__ = "0.1.0"
