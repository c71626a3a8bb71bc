"""Shared configuration for the health telemetry services."""
