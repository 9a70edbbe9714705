"""
Stream ingestion module.

Reads chunked NDJSON/SSE model responses and turns them into ordered content
deltas, with an overall deadline and caller-initiated cancellation.
"""
