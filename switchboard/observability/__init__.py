"""
Observability for Switchboard: structured logging with per-request context.
"""
