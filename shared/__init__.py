"""
Shared models, constants and errors for the sync tool.
"""
