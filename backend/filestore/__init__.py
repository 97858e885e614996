"""File catalog and pluggable storage providers."""
