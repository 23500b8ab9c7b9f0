"""Query expansion descriptor validation and serialization."""

from auditlens.query.builder import MAX_EXPANSION_DEPTH, build, parse

__all__ = ["MAX_EXPANSION_DEPTH", "build", "parse"]
