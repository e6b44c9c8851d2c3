"""Domain layer — models, errors, references and pure algorithms.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
