"""
Migrate Helm charts from Harbor's legacy ChartMuseum storage to OCI.

Build information is overridden at image build time.
"""

__version__ = "0.4.0"
COMMIT = "unknown"
BUILD_DATE = "unknown"
