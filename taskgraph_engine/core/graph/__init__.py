"""In-memory dependency graph.

A DependencyGraph is built fresh from Task/Edge records for one project and is
never mutated afterwards; every analysis runs against such a snapshot.
"""
from __future__ import annotations

from taskgraph_engine.core.graph.build_graph import DependencyGraph, build_graph

__all__ = ["DependencyGraph", "build_graph"]
