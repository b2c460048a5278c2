"""Simulation core (geometry, paths, transmissions, detections, engine).

The sub-modules are kept small and pure so each stage can be tested and reused
on its own, e.g. scheduling transmissions along a surveyed track instead of a
simulated one.
"""
