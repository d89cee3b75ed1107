"""
HTTP surface for PhotoRevive: FastAPI app factory, routes, settings and logging.
"""
