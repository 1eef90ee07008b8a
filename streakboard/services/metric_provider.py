"""Metric provider boundary: cumulative device health values over a window."""
import asyncio
import logging
from datetime import datetime
from typing import Protocol

import httpx

from streakboard.models.challenge import Metric

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a metric sample cannot be produced."""
    pass


class MetricProvider(Protocol):
    async def sample(
        self, user_id: int, metric: Metric, start: datetime, end: datetime,
    ) -> float:
        """Cumulative value of `metric` for the user over [start, end)."""
        ...


class HttpMetricProvider:
    """Reads samples from the device health-data bridge over HTTP.

    GET {base_url}/metrics/{metric}?user_id=&start=&end=  ->  {"value": 1234.0}
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip('/')
        self.client = client

    async def sample(
        self, user_id: int, metric: Metric, start: datetime, end: datetime,
    ) -> float:
        params = {
            'user_id': user_id,
            'start': start.isoformat(),
            'end': end.isoformat(),
        }
        url = f'{self.base_url}/metrics/{metric.value}'
        try:
            if self.client is not None:
                response = await self.client.get(url, params=params)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            value = response.json()['value']
            return float(value)
        except httpx.HTTPError as e:
            raise ProviderError(f'Metric bridge request failed: {e}') from e
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f'Malformed metric payload: {e}') from e


async def sample_with_timeout(
    provider: MetricProvider,
    user_id: int,
    metric: Metric,
    start: datetime,
    end: datetime,
    timeout: float,
) -> float:
    """Sample the provider, mapping timeouts onto ProviderError."""
    try:
        return await asyncio.wait_for(
            provider.sample(user_id, metric, start, end), timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.warning('Metric %s for user %s timed out after %ss', metric.value, user_id, timeout)
        raise ProviderError(f'Metric provider timed out after {timeout}s') from e
