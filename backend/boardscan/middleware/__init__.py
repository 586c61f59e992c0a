"""
BoardScan Backend — Middleware Package
========================================

Cross-cutting request handling shared by every route.

Chain (outermost first, as registered in main.create_app):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

Responses unwind in reverse, so the access log sees the final status code and
the X-Request-ID header is present even on 429 responses produced by the
rate limiter's own error body.
"""
