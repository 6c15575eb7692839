"""
Chirp background worker.
"""
