"""
Backend Shield — risk gateway for Solana token mints.

Fans out to third-party data providers, normalizes their payloads into a
canonical hints record, and scores it with a deterministic rule engine.
Modular layout: upstreams (fetch + aggregate), analysis engine (normalize +
score), rate limiting, and the API server.
"""

__version__ = "0.1.0"
