"""Index pipeline: declarations, build descriptors, fetching, reconciliation, writing."""
