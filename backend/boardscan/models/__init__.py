"""
BoardScan Backend — ORM Models
================================

Importing this package registers every table with ``Base.metadata`` so that
Alembic autogenerate and ``create_all()`` see the complete schema.

Tables:
    users              → User
    scan_records       → ScanRecord
    lots               → Lot
    activity_sessions  → ActivitySession
    board_names        → BoardName
"""

from boardscan.models.user import User, ROLE_ADMIN, ROLE_USER
from boardscan.models.lot import Lot, LOT_STATUS_OPEN, LOT_STATUS_CLOSED
from boardscan.models.scan_record import ScanRecord
from boardscan.models.activity_session import ActivitySession
from boardscan.models.board_name import BoardName

__all__ = [
    "User",
    "ROLE_ADMIN",
    "ROLE_USER",
    "Lot",
    "LOT_STATUS_OPEN",
    "LOT_STATUS_CLOSED",
    "ScanRecord",
    "ActivitySession",
    "BoardName",
]
