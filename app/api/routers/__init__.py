"""
API routers, one module per area: entity registry, import preview and
mapping, import jobs, export jobs, and enterprise agreements.
"""
