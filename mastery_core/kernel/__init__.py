"""
Kernel layer: SQL models and the append-only event log.

All progression writes are logged to event_logs in the same transaction.
"""
