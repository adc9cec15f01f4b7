"""Realtime infrastructure (Socket.IO connection registry and broadcasts).

This package holds the cross-domain realtime primitives so the admin
dashboard, notifications and analytics can share one socket server.
"""
