"""HTTP clients for the device telemetry and reverse geocoding endpoints."""
