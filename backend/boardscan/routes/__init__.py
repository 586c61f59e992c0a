"""
BoardScan Backend — API Routes Package
========================================

Route Inventory:
    - scans.py:        POST /api/scan, /api/scanned-boards[/{id}], GET /api/files/{path}
    - dashboard.py:    GET  /api/dashboard/stats
    - lots.py:         /api/lots... (admin)
    - activity.py:     /api/activity/sessions..., GET /api/activity/stats
    - board_names.py:  /api/board-names... (admin)
    - users.py:        GET /api/auth/user, /api/users... (admin)
    - health.py:       GET /health

Handlers stay thin: read the request, call one service method, set headers.
"""
