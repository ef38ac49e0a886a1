"""Core computational modules for mapping-qc.

This package contains the analysis stages:
- mapping_error: Weighted Mahalanobis mapping error scores and MAD-based QC
"""
