# Dev Portal - Health Prober

import logging
from typing import Optional

import requests  # type: ignore

from devportal.core.config import settings

logger = logging.getLogger("devportal")


class HealthProber:
    """HTTP liveness check; any failure reads as unhealthy."""

    def probe(self, url: str, timeout: Optional[float] = None) -> bool:
        timeout = settings.health_timeout if timeout is None else timeout
        try:
            resp = requests.get(url, timeout=timeout)
        except requests.RequestException as e:
            logger.debug("Health probe %s failed: %s", url, e)
            return False
        return 200 <= resp.status_code < 300
