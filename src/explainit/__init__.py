"""
ExplainIt dispatch core.

This package routes selected text to one of several third-party LLM providers
using a user-supplied API key. It builds tone/language specific prompts,
normalizes the provider HTTP APIs behind one call contract, retries transient
failures with exponential backoff and keeps per-provider credential state for
a settings UI.
"""
# Makes 'explainit' a package

__version__ = "1.0.0"
