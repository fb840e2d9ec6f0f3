"""
HTTP and WebSocket surface for the album reviews service.
"""
