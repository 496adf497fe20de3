"""SmartPark: parking slot allocation, timed sessions and fee billing."""

__version__ = "1.0.0"
