"""Shared pydantic schemas for the Hive server and its clients."""
