"""
Chirp API application.
"""
