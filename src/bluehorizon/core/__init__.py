"""
Sync core components: storage, outbox, drafts, caches, events, session.
"""
