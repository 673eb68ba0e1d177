"""
Tests package for FBAS influence analysis.

This package contains unit and integration tests for:
- Trust graph model and topology loading
- Quorum analysis
- NodeRank and power indices
- Reward distribution and reports
- Batch runner, configuration and CLI
"""
