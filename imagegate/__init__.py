"""Secure container image build pipeline with a vulnerability gate."""

__version__ = "0.2.0"
