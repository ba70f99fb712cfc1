"""Notification scheduling and delivery engine.

Ensures the local ``notification_engine`` package takes precedence over similarly
named dependencies that might be installed in the environment.
"""
