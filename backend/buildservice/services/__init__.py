"""
Build service business logic
"""
