"""Report runner service package."""
