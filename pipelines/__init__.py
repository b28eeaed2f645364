"""
Pipeline entry points.

The daily pipeline runs two stages:
1. Ingest - Collect, normalize, filter and store job postings
2. Deliver - Match stored jobs to users and hand them to the sink
"""
