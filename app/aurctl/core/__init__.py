"""Core logic: privileges, resolution, orchestration, cache and snapshots."""
