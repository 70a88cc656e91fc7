"""Application package for the study tracker backend.

This package exposes the service, repository, model and timer modules
used by the FastAPI application and its clients. Individual modules
contain the concrete implementations and documentation.
"""
