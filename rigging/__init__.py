"""
Rigging - Fixture dependency-injection and lifecycle engine.

Wires named, interdependent test collaborators together: constructs them in
dependency order, caches them per scope, and tears them down in reverse.

Usage:
    rigging check <module:registry>          # Static validation pass
    rigging plan <module:registry> <name>    # Show construction order
    rigging describe <module:registry>       # Dump declarations as YAML
"""

__version__ = "0.1.0"
