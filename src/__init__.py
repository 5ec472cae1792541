"""
Package marker for source code under `src`.
It holds the occupancy pricing engine, the HTTP API, and the shared settings, logging, and database helpers.
"""
