"""
Pydantic schema definitions for API payloads.

Schemas are the validated shapes of every record crossing the service
boundary; unknown keys are rejected rather than stored.
"""
