"""Access-control resource service.

Resolves request URIs to configured resource patterns and classifies how
strongly each URI is protected.
"""

__version__ = "1.0.0"
