"""Relevance ranking and the paginated query view."""

from .query_view import Page, QueryView, ViewFilters, compute_view

__all__ = ["Page", "QueryView", "ViewFilters", "compute_view"]
