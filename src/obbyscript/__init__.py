"""
ObbyScript event-rule interpreter package.
"""

from .version import __version__, TREE_FORMAT_VERSION  # noqa: F401

__all__ = [
    "lexer",
    "parser",
    "ast_nodes",
    "errors",
    "events",
    "serialization",
    "__version__",
    "TREE_FORMAT_VERSION",
]
