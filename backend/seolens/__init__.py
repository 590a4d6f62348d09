"""
SEOLens - page-level SEO audit engine with issue lifecycle tracking.
"""

__version__ = "0.1.0"
