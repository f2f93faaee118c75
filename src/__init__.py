"""
Media Relay - an ephemeral image relay.

Clients upload an image, receive an opaque handle, and can fetch the
image by that handle until a fixed TTL elapses.

This package contains the complete application:
- core: Framework-agnostic handles, storage and expiration
- infrastructure: Image decoding and re-encoding
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
