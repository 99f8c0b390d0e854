"""HTTP key/value front end for a sharded, TTL-bounded in-memory byte cache."""

__version__ = "0.1.0"
