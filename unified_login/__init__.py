"""Configuration pipeline for the Unified Login identity stack.

Turns a single configuration record into a validated, cross-referenced
descriptor graph that the CDK app renders as Cognito and IAM resources.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
