"""OneFS PAPI client.

Lightweight client for the PowerScale OneFS Platform API (PAPI) that
manages session cookies, re-authenticates expired sessions and merges
paged responses into a single result.
"""

__version__ = "0.1.0"
