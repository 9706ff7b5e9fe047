"""
dapi - model-driven REST data API over relational databases
"""
__version__ = "1.0.0"
