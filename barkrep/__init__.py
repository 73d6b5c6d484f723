"""
barkrep — Gamification & Reputation Engine
===========================================
Turns community activity (posts, votes, streaks, referrals, event
attendance) into durable reputation state: point balances, levels, tiers
and unlocked achievements.  Also scores community answers so the best ones
can be ranked and highlighted.

Package layout::

    barkrep/
    ├── config.py          # YAML → typed engine tuning
    ├── constants.py       # Level curve, rarity + quality tier labels
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session + async helper
    │   └── models.py      # Ledger, account, tier and progress tables
    ├── engine/
    │   ├── events.py      # Activity actions, base points + multipliers
    │   ├── quality.py     # Answer quality scorer
    │   ├── catalog.py     # Static achievement catalog (chains, hidden)
    │   ├── achievements.py # Requirement checks + hidden rule registry
    │   ├── tiers.py       # Tier ladder + progression maths
    │   └── locks.py       # Per-user lock registry
    └── services/
        ├── ledger_service.py       # award / spend / snapshot
        ├── tier_service.py         # apply_points / tier status
        ├── achievement_service.py  # evaluate_activity / listings
        ├── reconciliation_service.py # Ledger → snapshot drift repair
        └── reputation_service.py   # ReputationEngine boundary
"""

__version__ = "0.1.0"
