"""Pre-compiled regex patterns for the catalog pipeline.

All patterns are compiled once at module import so the extractors, which run
over thousands of entries per catalog, never recompile them.

Usage:
    from utils.patterns import LEADING_INT, INVULNERABLE_SAVE

    if INVULNERABLE_SAVE.search(name):
        ...
"""

import re

# Catalog document extensions: plain XML (.cat/.gst) and zipped (.catz/.gstz)
CATALOG_EXTENSIONS = re.compile(r'\.(cat|gst)z?$', re.IGNORECASE)

# Leading integer of a characteristic value, the way the source data writes
# numbers: "6+" -> 6, "-1" -> -1, "5.0" -> 5, "D6" -> no match
LEADING_INT = re.compile(r'^\s*([+-]?\d+)')

# Invulnerable save named by value: "4+ Invulnerable Save", "5+ invuln"
INVULNERABLE_SAVE = re.compile(r'\d\+\s*invuln', re.IGNORECASE)

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')
