"""Workflow graph models and helpers."""
