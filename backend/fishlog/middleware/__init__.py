"""
FishLog Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

The request id is assigned before the access log line is written, so every
log entry of a request carries the same id.
"""
