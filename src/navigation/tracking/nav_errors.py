# nav_errors.py
# Exceptions raised by the navigation core.

from typing import Optional

from .models import Coord


class NavigationError(Exception):
    """Base class for every failure the navigation core reports."""


class InvalidLocationError(NavigationError):
    """Origin or destination is not a usable coordinate."""

    def __init__(self, role: str, coord: Optional[Coord]) -> None:
        super().__init__(f"Invalid {role} coordinate: {coord}")
        self.role = role
        self.coord = coord


class NoRouteFoundError(NavigationError):
    """The routing service answered with zero routes."""

    def __init__(self, message: str = "No routes found to destination") -> None:
        super().__init__(message)


class RoutingError(NavigationError):
    """Raised by routing services when a request cannot be answered."""


class RoutingTransportError(RoutingError):
    """Network or service failure while talking to the routing backend."""
