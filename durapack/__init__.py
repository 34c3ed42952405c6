"""Durable provider adapters: record remote effects once, replay them exactly."""

__version__ = "0.1.0"
