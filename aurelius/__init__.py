"""
Aurelius integrations.

Adapters for third-party SaaS platforms sharing one contract:
authenticate, sync, receive webhooks, report capabilities.

Layout:
    aurelius.integrations   BaseIntegration contract and vendor adapters
    aurelius.resilience     Retry, circuit breaking, rate limiting
    aurelius.config         Settings and the provider catalogue
    aurelius.app            FastAPI service (webhooks, integration API)
"""

__version__ = "0.1.0"
