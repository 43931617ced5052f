"""
Blue Horizon sync core

Local durability and synchronization layer of the Blue Horizon desktop
client: a durable post outbox with retry/backoff, composition drafts, and
stale-while-revalidate caches for timeline, notifications and profiles.
"""

__version__ = "0.3.0"
