"""Logging subsystem for pgcrate.

Public API::

    from pgcrate.logging import configure_logging

    configure_logging(settings.logging)
"""

from pgcrate.logging.setup import cluster_context, configure_logging

__all__ = ["cluster_context", "configure_logging"]
