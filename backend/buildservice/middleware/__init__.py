"""
Ingress middleware: rate limiting, CORS and security headers
"""
