"""SmartCRM client-side data synchronization."""

__version__ = "1.0.0"
