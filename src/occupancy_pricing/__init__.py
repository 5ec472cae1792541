"""
Package marker for source code under `src.occupancy_pricing`.
It groups the occupancy enumerator, rule generator, price calculator, and import gate under one import path.
Most functionality lives in the sibling modules; this file intentionally stays lightweight.
"""
