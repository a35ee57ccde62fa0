"""Action node implementations."""

from .database import DatabaseNode
from .delay import DelayNode
from .email import EmailNode
from .http import HttpRequestNode
from .transform import TransformNode

__all__ = [
    "DatabaseNode",
    "DelayNode",
    "EmailNode",
    "HttpRequestNode",
    "TransformNode",
]
