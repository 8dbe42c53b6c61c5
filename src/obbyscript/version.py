"""
Central version constant for ObbyScript.
"""

__version__ = "1.0.0"

# Version of the JSON tree layout emitted by serialization.rule_to_dict
TREE_FORMAT_VERSION = "1"
