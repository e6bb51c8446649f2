"""Application services for ocigate.

Services implement the packaging, publish, release and cache logic. They take
configuration and a console from the caller and never touch the CLI layer.
"""
