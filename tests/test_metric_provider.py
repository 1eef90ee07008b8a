from datetime import datetime, timezone

import httpx
import pytest

from streakboard.models.challenge import Metric
from streakboard.services.metric_provider import HttpMetricProvider, ProviderError

START = datetime(2026, 3, 10, 0, 0, tzinfo=timezone.utc)
END = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


def provider_for(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpMetricProvider('http://bridge.local/', client=client)


async def test_reads_value_for_window():
    seen = {}

    def handler(request: httpx.Request):
        seen['path'] = request.url.path
        seen['params'] = dict(request.url.params)
        return httpx.Response(200, json={'value': 10432})

    value = await provider_for(handler).sample(7, Metric.STEPS, START, END)

    assert value == 10432.0
    assert seen['path'] == '/metrics/steps'
    assert seen['params']['user_id'] == '7'
    assert seen['params']['start'] == START.isoformat()


@pytest.mark.parametrize('response', [
    httpx.Response(503, json={'detail': 'sync pending'}),
    httpx.Response(200, json={'total': 1}),
    httpx.Response(200, json={'value': 'lots'}),
])
async def test_bad_responses_raise_provider_error(response):
    with pytest.raises(ProviderError):
        await provider_for(lambda request: response).sample(7, Metric.STEPS, START, END)


async def test_connection_errors_raise_provider_error():
    def handler(request):
        raise httpx.ConnectError('refused', request=request)

    with pytest.raises(ProviderError):
        await provider_for(handler).sample(7, Metric.DISTANCE, START, END)
