"""
Observability for Crytonix: structured logging configuration.

All modules log through logging.getLogger(__name__); this package decides
how those records are rendered (JSON in production, coloured text elsewhere).
"""
