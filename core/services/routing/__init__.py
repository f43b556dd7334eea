"""
Routing services - direction classification
"""
from .route_selector import RouteSelector

__all__ = ['RouteSelector']
