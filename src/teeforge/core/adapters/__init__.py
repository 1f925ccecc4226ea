"""Transform gateway implementations."""

from .fal_gateway import FalTransformGateway

__all__ = ["FalTransformGateway"]
