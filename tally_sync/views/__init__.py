# Views Package
# Response formatting

from .json_view import JsonView

__all__ = ["JsonView"]
