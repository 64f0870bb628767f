"""SmallTube: a YouTube Data API v3 client with pooled API keys and a TTL disk cache."""

__version__ = "0.1.0"
