"""Indicator and signal fusion engine.

This package contains pure business logic with no I/O dependencies
(no network, filesystem, or clock-driven scheduling). It is consumed by
the scanner service (scanner/), which owns data retrieval, batching and
the execution cycle.
"""
