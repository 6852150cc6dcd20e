"""
AWS-backed leaf components for the pipeline.

This package contains the credential resolver, the label classifier, the
topic publisher and the per-invocation factory that builds them.
"""

__all__ = ['aws', 'classifier', 'factory', 'publisher', 'secrets']
