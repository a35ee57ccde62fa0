"""Node definitions and the node registry."""

from .base import BaseNode, NodeDefinition, NodeParameter, ParameterType

__all__ = ["BaseNode", "NodeDefinition", "NodeParameter", "ParameterType"]
