"""
Orbit Navigator Demonstration

This script drives the orbit navigator from the command line:
- Interactive 3D view of the filtered catalog (vispy)
- Static snapshot of Earth, orbit rings and object markers (matplotlib)
- REST service over an ingested catalog (Flask)

Usage:
    python demo.py view [--rings] [--catalog-file FILE] [filters] [--verbose]
    python demo.py snapshot [--catalog-file FILE] [filters] [--output FILE]
    python demo.py serve [--catalog-file FILE] [--host HOST] [--port PORT]

Filters:
    --search TEXT, --location {EARTH,LEO,MEO,GEO}, --constellation NAME,
    --type {SATELLITE,DEBRIS,TELESCOPE}, --status STATUS

Without --catalog-file the catalog comes from the catalog service
(ORBIT_API_BASE) for `view`, and from CelesTrak for `serve`.
"""

import argparse
import logging
from datetime import datetime, timezone
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from config import config, FALLBACK_ISS_TLE
from logging_config import get_logger, configure_logging
from orbit_navigator import statistics, transform
from orbit_navigator.filters import FilterEngine
from orbit_navigator.ingest import CelestrakIngestor
from orbit_navigator.models import CatalogObject, FilterState
from orbit_navigator.orbits import ORBIT_TYPES, build_orbit_paths
from orbit_navigator.propagation import Propagator
from orbit_navigator.scene import SceneConfig, SceneManager, marker_color

logger = get_logger(__name__)


def load_catalog_file(path: str) -> List[CatalogObject]:
    """Read three-line element text from disk."""
    with open(path, "r", encoding="utf-8") as handle:
        text = handle.read()
    catalog = CelestrakIngestor().parse_text(text)
    logger.info(f"Loaded {len(catalog)} objects from {path}")
    return catalog


def fallback_catalog() -> List[CatalogObject]:
    """Single-object catalog built from the bundled ISS element set."""
    obj = CelestrakIngestor().build_object(
        FALLBACK_ISS_TLE["name"], FALLBACK_ISS_TLE["line1"], FALLBACK_ISS_TLE["line2"]
    )
    return [obj] if obj is not None else []


def filter_state_from_args(args: argparse.Namespace) -> FilterState:
    return FilterState(
        search=args.search or "",
        location=args.location,
        constellations=frozenset(args.constellation or ()),
        types=frozenset(args.type or ()),
        status=args.status,
    )


def render_snapshot(catalog: List[CatalogObject], state: FilterState, output_file: str,
                    timestamp: Optional[datetime] = None) -> int:
    """
    Save a 3D snapshot of the working set.

    Parameters
    ----------
    catalog : list of CatalogObject
        Full catalog
    state : FilterState
        Filter to apply
    output_file : str
        PNG path
    timestamp : datetime, optional
        Evaluation instant (default: now)

    Returns
    -------
    int
        Number of markers drawn
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    working_set = FilterEngine().apply(catalog, state)
    positioned = Propagator().propagate_batch(working_set[:config.MAX_SATELLITES_RENDER], timestamp)
    counts = statistics.aggregate(catalog)

    fig = plt.figure(figsize=(12, 12), facecolor="#000011")
    ax = fig.add_subplot(111, projection="3d", facecolor="#000011")

    # Earth
    radius = transform.earth_radius_scene()
    u, v = np.mgrid[0:2 * np.pi:48j, 0:np.pi:24j]
    ax.plot_wireframe(
        radius * np.cos(u) * np.sin(v),
        radius * np.sin(u) * np.sin(v),
        radius * np.cos(v),
        color="#1a4d80",
        linewidth=0.5,
    )

    # Orbit rings
    for path in build_orbit_paths(num_points=config.ORBIT_PATH_POINTS).values():
        ring = path.closed_points()
        ax.plot(ring[:, 0], ring[:, 1], ring[:, 2], color=path.color, alpha=0.8, linewidth=1, label=path.name)

    # Markers
    if positioned:
        points = np.array([p.position for p in positioned])
        colors = [marker_color(p.object) for p in positioned]
        ax.scatter(points[:, 0], points[:, 1], points[:, 2], c=colors, s=4, alpha=0.8, depthshade=False)

    extent = transform.to_scene(ORBIT_TYPES["GEO"].max_altitude) + radius
    ax.set_xlim(-extent, extent)
    ax.set_ylim(-extent, extent)
    ax.set_zlim(-extent, extent)
    ax.set_axis_off()
    ax.set_title(
        f"{len(positioned)} of {len(working_set)} objects  |  "
        f"active {counts.active}  inactive {counts.inactive}  debris {counts.debris}  other {counts.other}\n"
        f"{timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        color="white",
    )
    ax.legend(loc="upper left", fontsize=8, facecolor="#000011", labelcolor="white")

    plt.tight_layout()
    plt.savefig(output_file, dpi=150, facecolor=fig.get_facecolor())
    logger.info(f"Saved snapshot with {len(positioned)} markers to {output_file}")
    plt.close(fig)
    return len(positioned)


def run_view(args: argparse.Namespace, catalog: Optional[List[CatalogObject]]) -> None:
    """Open the interactive vispy window."""
    from vispy import app
    from orbit_navigator.catalog_client import CatalogClient
    from orbit_navigator.render_backend import VispyBackend
    from orbit_navigator.session import NavigatorSession

    scene_config = SceneConfig.ring_viewer() if args.rings else SceneConfig()
    scene = SceneManager(VispyBackend(), scene_config)
    session = NavigatorSession(CatalogClient(), scene)

    scene.initialize()
    session.set_auto_rotate(args.auto_rotate)
    session.selection_listeners.append(
        lambda obj: logger.info(f"Selected: {session.selection_details()}") if obj else None
    )

    session.set_filter_state(filter_state_from_args(args))
    session.refresh_paths()
    if args.rings:
        session.load_launches()
    elif catalog is not None:
        session.set_catalog(catalog)
    else:
        session.load_catalog()

    def on_control_tick(event):
        session.tick()
        if session.advisory:
            logger.warning(session.advisory)
            session.dismiss_advisory()

    control_timer = app.Timer(interval=0.1, connect=on_control_tick, start=True)
    try:
        app.run()
    finally:
        control_timer.stop()
        session.close()


def run_serve(args: argparse.Namespace, catalog: Optional[List[CatalogObject]]) -> None:
    """Serve the REST API."""
    from orbit_navigator.api import CatalogStore, create_app

    ingestor = CelestrakIngestor()
    store = CatalogStore(catalog or (), ingestor=ingestor)
    if catalog is None:
        store.refresh()

    app = create_app(store)
    app.run(host=args.host, port=args.port)


def main() -> None:
    """Main demonstration entry point."""
    parser = argparse.ArgumentParser(description="Orbit Navigator Demonstration")
    parser.add_argument("command", choices=["view", "snapshot", "serve"], help="What to run")
    parser.add_argument("--catalog-file", help="Three-line element file to use instead of a service")
    parser.add_argument("--search", help="Free-text search")
    parser.add_argument("--location", choices=["EARTH", "LEO", "MEO", "GEO"], help="Altitude band")
    parser.add_argument("--constellation", action="append", help="Constellation (repeatable)")
    parser.add_argument("--type", action="append", help="Object type code (repeatable)")
    parser.add_argument("--status", help="Operational status")
    parser.add_argument("--rings", action="store_true", help="Orbit-ring viewer (view only)")
    parser.add_argument("--auto-rotate", action="store_true", help="Auto-rotate the camera (view only)")
    parser.add_argument("--output", default="orbit_snapshot.png", help="Snapshot file")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (serve only)")
    parser.add_argument("--port", type=int, default=5000, help="Port (serve only)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    # Configure logging
    if args.verbose:
        configure_logging(level=logging.DEBUG)

    catalog = load_catalog_file(args.catalog_file) if args.catalog_file else None

    if args.command == "snapshot":
        render_snapshot(catalog or fallback_catalog(), filter_state_from_args(args), args.output)
    elif args.command == "view":
        run_view(args, catalog)
    else:
        run_serve(args, catalog)


if __name__ == "__main__":
    main()
