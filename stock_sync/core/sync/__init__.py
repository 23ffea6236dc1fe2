"""
CSV stock and price sync jobs.
"""
