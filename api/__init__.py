"""
HTTP trigger surface for the listing pipeline.

Modules:
    main: Application factory, exception mapping and lifecycle hooks
    middleware: Request ID and latency headers
    dependencies: Session and service providers
    routes: Listings, zones, health and statistics endpoints
"""
