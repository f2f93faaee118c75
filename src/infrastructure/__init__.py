"""
Infrastructure layer - external library integrations.

Each subdirectory wraps an external dependency:
- imaging: Pillow decoding and PNG re-encoding

These wrappers translate between library types and our domain models.
"""
