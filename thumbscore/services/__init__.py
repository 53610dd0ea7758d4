"""
Services Package
================
External-model services used by the API.
"""
