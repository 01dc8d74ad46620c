"""
Comments gateway package.

This package provides a FastAPI application that verifies main-project
access tokens and forwards comment writes and attachment URL signing to the
comments project's database and object storage.
"""
