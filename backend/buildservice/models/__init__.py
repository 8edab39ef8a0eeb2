"""
Plugin Build Service Models
Request/response schemas and shared enums
"""
