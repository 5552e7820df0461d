"""
Helpers shared by the services and routers.
"""
