"""Domain models for subdash."""

from .devices import AuthorizedDevice
from .value_objects import AuthPolicy

__all__ = ["AuthPolicy", "AuthorizedDevice"]
