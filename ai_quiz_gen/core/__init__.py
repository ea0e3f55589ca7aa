"""
Core modules for AI quiz generation.

This package contains prompt construction, JSON recovery, content
validation, quota enforcement and the generation orchestrator.
"""
