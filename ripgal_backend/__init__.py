"""
ripgal backend: catalog query & retrieval engine over a ripme-style media catalog.
"""
