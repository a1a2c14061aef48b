"""
CLI frontend for protonkit
"""
