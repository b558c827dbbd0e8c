"""
Service layer package.

Each service module encapsulates one part of the asset lifecycle.
Services are the only layer that writes models; callers (forms,
tables, reports, CLI commands) use the service functions and read
the computed fields they maintain.

Import services as needed::

    from assetlife.services import allocation_service
    allocation_service.allocate(asset_id, holder_id, purpose)
"""
