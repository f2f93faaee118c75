"""
Core media relay logic.

This module is framework-agnostic - it doesn't import FastAPI, Pillow,
or any infrastructure concerns. Handles, storage and expiration can be
tested in isolation from HTTP and image processing.
"""
