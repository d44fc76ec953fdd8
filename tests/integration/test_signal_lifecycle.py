"""Integration tests for the complete signal lifecycle."""

import json

import pytest

from token_signals.core.enums import DeliveryKind
from token_signals.events.extractor import NATIVE_MINT
from token_signals.main import SignalBot, _config_from_env
from token_signals.notify.notifier import LoggingNotifier

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


def build_bot(**overrides):
    config = {
        'helius': {'api_key': ''},
        'dexscreener': {'backoff_base': 0.0, 'max_retry_after': 0.01, 'cooldown_seconds': 0.2},
        'progress': {'pacing_delay': 0.0},
        'volume': {'pacing_delay': 0.0},
    }
    config.update(overrides)
    return SignalBot(config, notifier=LoggingNotifier())


def webhook_body(make_swap_event):
    return json.dumps([
        make_swap_event(MINT, "sig-valid"),
        {"signature": "sig-native", "tokenTransfers": [{"mint": NATIVE_MINT, "tokenAmount": 2.0}]},
    ]).encode()


class TestWebhookScenario:
    """Webhook array with one qualifying token and one native-only transfer."""

    @pytest.mark.asyncio
    async def test_single_signal_and_registration(
        self, fake_session, fake_response, make_pair, make_swap_event
    ):
        bot = build_bot()
        session = fake_session(fake_response(200, [make_pair(address=MINT)]))
        bot.connector._session = session

        dispatched = await bot.handle_webhook(webhook_body(make_swap_event))

        assert dispatched == 1
        assert len(session.calls) == 1
        assert await bot.dedup.contains(MINT)
        assert await bot.dedup.size() == 1
        assert len(bot.notifier.deliveries) == 1
        assert bot.notifier.deliveries[0].kind == DeliveryKind.TEXT
        assert await bot.tracker.size() == 1
        tracked = await bot.tracker.get(MINT)
        assert tracked.baseline_market_cap == 100000.0

        # redelivery of the same webhook is absorbed by the dedup cache
        assert await bot.handle_webhook(webhook_body(make_swap_event)) == 0
        assert len(session.calls) == 1

        status = await bot.get_status()
        assert status['tracked_tokens'] == 1
        assert status['signals_sent'] == 1
        await bot.stop()

    @pytest.mark.asyncio
    async def test_progress_milestone_after_signal(
        self, fake_session, fake_response, make_pair, make_swap_event
    ):
        bot = build_bot()
        bot.connector._session = fake_session(
            fake_response(200, [make_pair(address=MINT, market_cap=100000.0)]),
            fake_response(200, [make_pair(address=MINT, market_cap=210000.0)]),
        )

        await bot.handle_webhook(webhook_body(make_swap_event))
        assert await bot.tracker.run_cycle() == 1

        milestones = bot.notifier.of_kind(DeliveryKind.MILESTONE)
        assert len(milestones) == 1
        assert "hit: 2x" in milestones[0].message
        await bot.stop()

    @pytest.mark.asyncio
    async def test_rate_limited_webhook_is_acknowledged_and_retryable(
        self, fake_session, fake_response, make_pair, make_swap_event
    ):
        bot = build_bot()
        bot.connector._session = fake_session(
            fake_response(429), fake_response(429), fake_response(429),
            fake_response(200, [make_pair(address=MINT)]),
        )

        assert await bot.handle_webhook(webhook_body(make_swap_event)) == 0
        assert not await bot.dedup.contains(MINT)
        assert bot.rate_limiter.cooldown.active

        assert await bot.handle_webhook(webhook_body(make_swap_event)) == 1
        await bot.stop()

    @pytest.mark.asyncio
    async def test_bad_market_data_does_not_block_batch(
        self, fake_session, fake_response, make_pair, make_swap_event
    ):
        bot = build_bot()
        odd_timestamp = make_pair(address="MintOdd")
        odd_timestamp["pairCreatedAt"] = 10 ** 20
        bot.connector._session = fake_session(
            fake_response(200, b"\xff\xfe[{\x80}]"),
            fake_response(200, [odd_timestamp]),
            fake_response(200, [make_pair(address=MINT)]),
        )
        body = [
            make_swap_event("MintGarbled", "sig-1"),
            make_swap_event("MintOdd", "sig-2"),
            make_swap_event(MINT, "sig-3"),
        ]

        assert await bot.handle_webhook(body) == 0
        assert len(bot.notifier.deliveries) == 2
        assert not await bot.dedup.contains("MintGarbled")
        assert await bot.dedup.contains("MintOdd")
        assert await bot.dedup.contains(MINT)
        await bot.stop()

    @pytest.mark.asyncio
    async def test_malformed_webhook_acknowledged(self):
        bot = build_bot()
        assert await bot.handle_webhook(b"{broken") == 0
        assert await bot.handle_swap_webhook(b"[1, 2") == {}
        await bot.stop()


class TestVolumePath:
    """Swap webhooks feeding the volume-triggered signal path."""

    @pytest.mark.asyncio
    async def test_swaps_accumulate_until_validated(
        self, fake_session, fake_response, make_pair, make_swap_event
    ):
        bot = build_bot()
        bot.connector._session = fake_session(fake_response(200, [make_pair(address=MINT)]))

        summary = await bot.handle_swap_webhook([
            make_swap_event(MINT, "s1", 200.0),
            make_swap_event(MINT, "s2", 350.0),
            make_swap_event(MINT, "s2", 350.0),
        ])
        assert summary["processed"] == 2
        assert await bot.volume_cache.get_total(MINT) == 550.0

        stats = await bot.volume_trigger.run_cycle()

        assert stats["validated"] == 1
        assert await bot.volume_cache.size() == 0
        assert "Volume Trigger: $550.00" in bot.notifier.deliveries[0].message
        assert await bot.tracker.size() == 0
        await bot.stop()


class TestLifecycle:
    """Start/stop of the background loops."""

    @pytest.mark.asyncio
    async def test_start_stop(self):
        bot = build_bot()
        await bot.start()
        assert (await bot.get_status())['running']
        await bot.stop()

        assert not (await bot.get_status())['running']
        assert bot.tracker._task is None
        assert bot.volume_cache._sweep_task is None
        assert bot.volume_trigger._task is None


def test_config_from_env(monkeypatch):
    monkeypatch.setenv('MIN_LIQUIDITY', '12345')
    monkeypatch.setenv('MIN_TXNS_5M', '7')
    monkeypatch.setenv('ADVANCED_FILTERS', 'true')
    monkeypatch.setenv('PROGRESS_MAX_TRACKED', '50')
    monkeypatch.setenv('VOLUME_THRESHOLD_USD', '750')
    monkeypatch.setenv('DEXSCREENER_COOLDOWN_SECONDS', '30')
    monkeypatch.delenv('HELIUS_API_KEY', raising=False)
    monkeypatch.delenv('HELIUS_RPC_URL', raising=False)

    config = _config_from_env()

    assert config['criteria'] == {'min_liquidity': 12345.0, 'min_txns_5m': 7, 'advanced_filters': True}
    assert config['progress'] == {'max_tracked': 50}
    assert config['volume'] == {'threshold': 750.0}
    assert config['dexscreener'] == {'cooldown_seconds': 30.0}
    assert 'helius' not in config
