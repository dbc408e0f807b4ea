"""Core module - ambient concerns shared by the pipeline and the API.

- config: PACE connection and pipeline settings
- observability: structured logging with correlation IDs, metrics

Upstream-specific logic (PACE) belongs in /connectors/.
"""

__version__ = "1.0.0"
