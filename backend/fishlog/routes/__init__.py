"""
FishLog Backend — API Routes Package
======================================

Route Inventory:
    - trips.py:      /api/v1/trips…
    - catches.py:    /api/v1/trips/{id}/catches, /api/v1/catches/{id}
    - equipment.py:  /api/v1/trips/{id}/equipment/{kind}…, /api/v1/me/last-used-equipment
    - gear.py:       /api/v1/rods…, /api/v1/lures…, /api/v1/groundbaits…
    - species.py:    /api/v1/fish-species…
    - weather.py:    /api/v1/trips/{id}/weather/…, /api/v1/weather/snapshots/{id}
    - photos.py:     /api/v1/catches/{id}/photo…
    - files.py:      /api/v1/files/{path}   (local blob backend only)
    - health.py:     /health

Routes stay thin: build input, call a service, unwrap the ServiceResult.
"""
