"""Layer storage layer.

This module persists tile layers in range-scan backing stores and keeps
their metadata in a cached catalog. It powers the reader, writer, and SDK.
"""
