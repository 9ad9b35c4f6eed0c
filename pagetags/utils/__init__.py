"""
Collaborators available to templates through global functions.
"""
