"""
restsim package initializer.

This package contains the restroom occupancy simulator: layout and agent
entities, the tile grid and path producers, dwell-time sampling, fixture
occupancy bookkeeping, the per-tick agent state machine, the simulation
driver with its host command surface, and KPI collection.
"""
__version__ = "0.1.0"

__all__ = [
    "entities", "errors", "grid", "paths", "dwell", "fixtures",
    "agents", "simulation", "worker", "metrics", "config",
]
