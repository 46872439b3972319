"""
Orbit Navigator Package

Live 3D view of Earth-orbiting objects computed from two-line element sets:
propagation, frame conversion, procedural orbit rings, a resource-owning
scene manager, picking, and the filter/statistics layer over the catalog.

Modules:
    tle: TLE parsing, checksums, derived orbital data, frame rotations
    propagation: SGP4 invocation contract and batch propagation
    transform: kilometre <-> scene-unit conversion
    orbits: orbit classes and idealized orbit-ring generation
    models: catalog, filter and statistics data models
    filters: compound catalog predicates
    statistics: status bucket aggregation
    ingest: CelesTrak 3-line text ingest and classification
    catalog_client: REST client for the catalog service
    controls: perspective camera and orbit navigation controls
    scheduler: per-frame callback scheduler
    resources: arena of renderable resource handles
    render_backend: rendering backend interface and vispy implementation
    scene: scene/resource manager
    picking: pointer ray picking against markers
    session: host-facing orchestration of the core
    api: Flask REST service over an in-memory catalog
"""

__version__ = "1.0.0"
