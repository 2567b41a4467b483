"""gitnexus-bridge: knowledge-graph augmentation for agent tool results.

Talks to a gitnexus backend two ways: a long-lived JSON-RPC connection
(`gitnexus mcp`) for explicit queries, and short-lived `gitnexus augment`
processes for the automatic lookups appended to search and read results.
"""

__version__ = "0.1.0"
