"""
vidlingo: learning progress and mastery tracking for video-based language study.

Subpackages:
- progress: engine, scheduling math, XP ledger, rollup aggregation, store adapters
- db: SQLAlchemy models and async session wiring
- api: FastAPI application and routers
- cli: Typer command line
"""

__version__ = "0.1.0"
