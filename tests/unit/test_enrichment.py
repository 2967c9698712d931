"""Tests for root-cause enrichment: the HTTP client and the background queue."""

import asyncio
import json

import httpx
import pytest

from supply_sentinel.common.config import SentinelSettings
from supply_sentinel.common.database import DatabaseManager
from supply_sentinel.anomaly.models import AnomalyModel
from supply_sentinel.enrichment.client import RootCauseClient
from supply_sentinel.enrichment.queue import EnrichmentJob, RootCauseEnricher


AUDIT_KEY = "test-audit-key-for-unit-tests"


def make_settings(**overrides) -> SentinelSettings:
    defaults = {"audit_key": AUDIT_KEY, "db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return SentinelSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


def _summary():
    return {
        "anomaly_type": "delayed_shipment",
        "severity": "CRITICAL",
        "title": "Shipment SH-1 delayed by 50 hours",
        "description": "Shipment from Harare to Beira is 50 hours overdue",
        "affected_resource_type": "shipment",
        "affected_resource_id": "ship-1",
        "metadata": {"delay_hours": 50.0, "origin": "Harare"},
    }


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


async def _critical_anomaly(db) -> EnrichmentJob:
    async with db.get_session() as session:
        anomaly = AnomalyModel(
            anomaly_type="delayed_shipment",
            severity="CRITICAL",
            title="Shipment SH-1 delayed by 50 hours",
            affected_resource_type="shipment",
            affected_resource_id="ship-1",
        )
        session.add(anomaly)
        await session.flush()
        anomaly_id = anomaly.id
    summary = _summary()
    return EnrichmentJob(
        anomaly_id=anomaly_id,
        anomaly_type=summary["anomaly_type"],
        severity=summary["severity"],
        title=summary["title"],
        description=summary["description"],
        affected_resource_type=summary["affected_resource_type"],
        affected_resource_id=summary["affected_resource_id"],
        metadata=summary["metadata"],
    )


async def _stored_root_cause(db, anomaly_id):
    async with db.get_session() as session:
        anomaly = await session.get(AnomalyModel, anomaly_id)
        return anomaly.ai_root_cause, anomaly.root_cause


class FakeClient:
    def __init__(self, reply="Border post congestion at Forbes.", delay=0.0, error=None):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls = []
        self.closed = False

    async def generate_root_cause(self, summary):
        self.calls.append(summary)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def close(self):
        self.closed = True


# ── RootCauseClient ──


class TestRootCauseClient:
    async def test_posts_chat_completion(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("  Customs hold.  "))

        client = RootCauseClient(
            "https://llm.test/v1/", "sk-test", "test-model",
            transport=httpx.MockTransport(handler),
        )
        try:
            text = await client.generate_root_cause(_summary())
        finally:
            await client.close()

        assert text == "Customs hold."
        assert captured["url"] == "https://llm.test/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"]["model"] == "test-model"
        roles = [m["role"] for m in captured["body"]["messages"]]
        assert roles == ["system", "user"]
        assert "SH-1" in captured["body"]["messages"][1]["content"]

    async def test_http_error_raises(self):
        client = RootCauseClient(
            "https://llm.test/v1", "sk-test", "m",
            transport=httpx.MockTransport(lambda r: httpx.Response(503)),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await client.generate_root_cause(_summary())
        await client.close()

    @pytest.mark.parametrize("payload", [_completion("   "), {"choices": []}, {}])
    async def test_missing_text_raises(self, payload):
        client = RootCauseClient(
            "https://llm.test/v1", "sk-test", "m",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)),
        )
        with pytest.raises(ValueError):
            await client.generate_root_cause(_summary())
        await client.close()

    def test_prompt_lists_measurements(self):
        prompt = RootCauseClient.build_prompt(_summary())
        assert "Type: delayed_shipment" in prompt
        assert "- delay_hours: 50.0" in prompt
        assert "Affected resource: shipment/ship-1" in prompt

    def test_prompt_without_metadata(self):
        summary = _summary()
        summary["metadata"] = {}
        assert "- none" in RootCauseClient.build_prompt(summary)


# ── RootCauseEnricher ──


class TestEnricher:
    async def test_enrich_patches_anomaly(self, db):
        job = await _critical_anomaly(db)
        enricher = RootCauseEnricher(db, FakeClient())
        assert await enricher.enrich(job) is True
        assert await _stored_root_cause(db, job.anomaly_id) == (
            "Border post congestion at Forbes.",
            "Border post congestion at Forbes.",
        )

    async def test_client_failure_leaves_anomaly_untouched(self, db):
        job = await _critical_anomaly(db)
        enricher = RootCauseEnricher(db, FakeClient(error=RuntimeError("boom")))
        assert await enricher.enrich(job) is False
        assert await _stored_root_cause(db, job.anomaly_id) == (None, None)

    async def test_timeout(self, db):
        job = await _critical_anomaly(db)
        enricher = RootCauseEnricher(db, FakeClient(delay=1.0), timeout=0.05)
        assert await enricher.enrich(job) is False
        assert await _stored_root_cause(db, job.anomaly_id) == (None, None)

    async def test_missing_anomaly(self, db):
        job = await _critical_anomaly(db)
        gone = EnrichmentJob(**{**job.__dict__, "anomaly_id": "no-such-id"})
        enricher = RootCauseEnricher(db, FakeClient())
        assert await enricher.enrich(gone) is False

    async def test_submit_disabled_drops_job(self, db):
        job = await _critical_anomaly(db)
        enricher = RootCauseEnricher(db, client=None)
        assert enricher.enabled is False
        assert enricher.submit(job) is False
        assert enricher.running is False

    async def test_queue_processes_and_isolates_failures(self, db):
        good = await _critical_anomaly(db)
        other = await _critical_anomaly(db)

        class FlakyClient(FakeClient):
            async def generate_root_cause(self, summary):
                self.calls.append(summary)
                if len(self.calls) == 1:
                    raise httpx.ConnectError("down")
                return "Recovered narrative"

        client = FlakyClient()
        enricher = RootCauseEnricher(db, client, workers=1)
        assert enricher.submit(other) is True
        assert enricher.submit(good) is True
        assert enricher.running is True

        await enricher.join()
        await enricher.stop()

        assert len(client.calls) == 2
        assert await _stored_root_cause(db, other.anomaly_id) == (None, None)
        assert await _stored_root_cause(db, good.anomaly_id) == (
            "Recovered narrative", "Recovered narrative",
        )
        assert client.closed is True
        assert enricher.running is False

    async def test_start_is_idempotent(self, db):
        enricher = RootCauseEnricher(db, FakeClient(), workers=2)
        enricher.start()
        first = list(enricher._workers)
        enricher.start()
        assert enricher._workers == first
        assert len(first) == 2
        await enricher.stop()
