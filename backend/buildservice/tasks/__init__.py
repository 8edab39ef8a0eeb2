"""
Celery tasks for the plugin build service
"""
