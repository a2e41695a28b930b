"""
Core business logic for media uploads and derivatives.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Pillow or any infrastructure concerns. Collaborators are reached through
the Protocols in `media.protocols`.
"""
