"""
pqtool: inspect, sample, aggregate, convert and merge Parquet files
without loading whole files into memory.
"""

__version__ = "0.1.0"
