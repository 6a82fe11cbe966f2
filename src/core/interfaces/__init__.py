"""Contracts (Protocols) that concrete connectors implement."""
