"""Rockets telemetry service.

Ingests unordered, at-least-once rocket telemetry and reduces it into the
current state of each rocket.
"""
