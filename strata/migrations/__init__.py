"""Core migration units shipped with strata.

Units live in one subdirectory per domain (schema/, config/, content/)
and are named `<version>-<timestamp>-<title>.py`, e.g.
`0_2_0-1718000000000-add-run-index.py`. Each defines `up(context)` and
optionally `down(context)`, returning a MigrationOutcome.
"""
