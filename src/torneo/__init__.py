"""
Torneo - Multi-sport Tournament Engine

Builds the competitive structure of a tournament and keeps it moving as
results come in. Covers goal-based sports (soccer, futsal, basketball)
and set-based volleyball.

Main components:
- rules: Sport rule strategies (points tables, set validation)
- engine: Group allocation, round-robin scheduling, standings,
  elimination brackets and best-of-N series progression
- db: SQLAlchemy models and session management
- services: Trigger functions that load, run the engine and persist
- locks: Per-tournament single-writer locking
"""

__version__ = "1.0.0"
