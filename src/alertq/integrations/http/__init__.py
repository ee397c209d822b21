"""HTTP integration.

Talks to the alerting evaluation endpoint over httpx. See
:class:`alertq.config.RunnerSettings` for the environment variables used by
``HttpEvaluationClient.from_settings``.
"""

from .client import REQUEST_ID_HEADER, HttpEvaluationClient

__all__ = ["HttpEvaluationClient", "REQUEST_ID_HEADER"]
