"""
Classic Hunt dashboard API.
"""
