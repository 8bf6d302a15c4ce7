"""
Utility modules for the review preprocessor.

Cross-cutting concerns:
- Storage: Raw and clean review stores
- Events: JSON Lines request consumer and completion producer
"""
