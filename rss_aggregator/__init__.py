"""
RSS Aggregator - Merge RSS/Atom feeds into a single deduplicated entry store.

A Python application that fetches a configured list of feeds through a
disk-backed conditional-fetch cache, normalizes their items and stores
them once per GUID, ready to be rendered as an HTML page or Atom feed.
"""

__version__ = "1.0.0"
