"""
BoardScan Backend — Application Package
=========================================

Backend for a camera-driven circuit-board triage app: users photograph
boards, Gemini Vision classifies them, and the results are tracked as scan
records, grouped into lots and summarized on dashboards.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← authorization, pricing, rollups
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
