"""HTTP handlers over the scan services."""
