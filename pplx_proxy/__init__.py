"""pplx-proxy: OpenAI-compatible gateway in front of Perplexity web sessions."""

__version__ = "0.1.0"
