"""
HTTP API for story uploads, progress and media.
"""
