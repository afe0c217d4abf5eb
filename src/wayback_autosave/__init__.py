"""Navigation-driven Wayback Machine auto-archiver.

Watches a user's navigation through a content site, derives a canonical
identity for each item visited and submits that item, plus the external
media it embeds, to the Wayback Machine save endpoint through a persistent,
retrying queue.
"""

__version__ = "0.1.0"
