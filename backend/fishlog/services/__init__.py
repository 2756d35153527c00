"""
FishLog Backend — Services Layer
==================================

Service Inventory:
    - TripService:       trip CRUD, quick start, close, soft delete
    - CatchService:      catch CRUD with trip-range and snapshot rules
    - EquipmentService:  trip ↔ rod/lure/groundbait reconciliation
    - EquipmentCatalogService: rod / lure / groundbait CRUD with soft delete
    - FishSpeciesService: read-only species dictionary
    - WeatherService:    manual and provider weather snapshots
    - PhotoService:      catch photo pipeline with compensating rollback

Every service takes its row store (and blob store / provider where needed)
in the constructor and returns ServiceResult values.
"""
