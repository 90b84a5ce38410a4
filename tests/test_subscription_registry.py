"""Test subscription registry operations."""
import pytest

from relay.exceptions import CapacityExceededError, InvalidSubscriptionError
from relay.registry import (
    WILDCARD,
    SubscriptionMode,
    SubscriptionRegistry,
    normalize_symbol,
)


class TestSubscriptionRegistry:
    """Test SubscriptionRegistry mutations and snapshots."""

    def setup_method(self):
        self.registry = SubscriptionRegistry(max_subscriptions=3)

    def test_starts_empty(self):
        snapshot = self.registry.snapshot()
        assert snapshot.symbols == ()
        assert snapshot.count == 0
        assert snapshot.mode is SubscriptionMode.TICKER_SPECIFIC

    def test_add_normalizes_and_dedupes(self):
        """Repeated adds of the same symbol keep exactly one entry."""
        first = self.registry.add('aapl')
        second = self.registry.add(' AAPL ')

        assert first.added == ('AAPL',)
        assert second.empty
        assert self.registry.snapshot().symbols == ('AAPL',)

    def test_add_preserves_insertion_order(self):
        for symbol in ('MSFT', 'AAPL', 'NVDA'):
            self.registry.add(symbol)

        assert self.registry.snapshot().symbols == ('MSFT', 'AAPL', 'NVDA')

    def test_add_at_capacity_fails(self):
        for symbol in ('AAPL', 'MSFT', 'NVDA'):
            self.registry.add(symbol)

        with pytest.raises(CapacityExceededError):
            self.registry.add('TSLA')
        assert self.registry.snapshot().symbols == ('AAPL', 'MSFT', 'NVDA')

    def test_add_existing_at_capacity_is_noop(self):
        for symbol in ('AAPL', 'MSFT', 'NVDA'):
            self.registry.add(symbol)

        assert self.registry.add('MSFT').empty

    def test_add_invalid_symbol_rejected(self):
        with pytest.raises(InvalidSubscriptionError):
            self.registry.add('')
        with pytest.raises(InvalidSubscriptionError):
            self.registry.add('AA PL')
        assert len(self.registry) == 0

    def test_remove(self):
        self.registry.add('AAPL')
        self.registry.add('MSFT')

        delta = self.registry.remove('aapl')

        assert delta.removed == ('AAPL',)
        assert self.registry.snapshot().symbols == ('MSFT',)

    def test_remove_missing_is_noop(self):
        self.registry.add('AAPL')

        assert self.registry.remove('TSLA').empty
        assert self.registry.snapshot().symbols == ('AAPL',)

    def test_clear(self):
        self.registry.add('AAPL')
        self.registry.add('MSFT')

        delta = self.registry.clear()

        assert delta.removed == ('AAPL', 'MSFT')
        assert len(self.registry) == 0
        assert self.registry.clear().empty

    def test_snapshot_is_point_in_time(self):
        self.registry.add('AAPL')
        snapshot = self.registry.snapshot()

        self.registry.add('MSFT')

        assert snapshot.symbols == ('AAPL',)
        assert 'MSFT' not in snapshot

    def test_restore(self):
        self.registry.add('AAPL')
        saved = self.registry.snapshot()
        self.registry.replace_all(['NVDA', 'TSLA'])

        self.registry.restore(saved)

        assert self.registry.snapshot() == saved


class TestReplaceAll:
    """replace_all is atomic: rejected input leaves the set untouched."""

    def setup_method(self):
        self.registry = SubscriptionRegistry(max_subscriptions=3)
        self.registry.add('AAPL')
        self.registry.add('MSFT')

    def test_replace_reports_delta_only(self):
        delta = self.registry.replace_all(['msft', 'nvda'])

        assert delta.removed == ('AAPL',)
        assert delta.added == ('NVDA',)
        assert self.registry.snapshot().symbols == ('MSFT', 'NVDA')

    def test_replace_dedupes_input(self):
        self.registry.replace_all(['TSLA', 'tsla', 'TSLA'])

        assert self.registry.snapshot().symbols == ('TSLA',)

    def test_replace_with_empty_list_clears(self):
        delta = self.registry.replace_all([])

        assert delta.removed == ('AAPL', 'MSFT')
        assert len(self.registry) == 0

    def test_over_capacity_rejected_without_mutation(self):
        with pytest.raises(CapacityExceededError):
            self.registry.replace_all(['A', 'B', 'C', 'D'])

        assert self.registry.snapshot().symbols == ('AAPL', 'MSFT')

    def test_non_list_rejected_without_mutation(self):
        for bad in ('AAPL', None, {'AAPL': 1}, 42):
            with pytest.raises(InvalidSubscriptionError):
                self.registry.replace_all(bad)

        assert self.registry.snapshot().symbols == ('AAPL', 'MSFT')

    def test_invalid_element_rejected_without_mutation(self):
        with pytest.raises(InvalidSubscriptionError):
            self.registry.replace_all(['NVDA', 7])

        assert self.registry.snapshot().symbols == ('AAPL', 'MSFT')

    def test_wildcard_mixed_with_tickers_rejected(self):
        with pytest.raises(InvalidSubscriptionError):
            self.registry.replace_all(['*', 'NVDA'])

        assert self.registry.snapshot().symbols == ('AAPL', 'MSFT')

    def test_full_registry_matches_max(self):
        registry = SubscriptionRegistry()
        tickers = [f"T{i}" for i in range(50)]

        registry.replace_all(tickers)

        assert registry.snapshot().count == 50
        with pytest.raises(CapacityExceededError):
            registry.replace_all(tickers + ['T50'])
        assert registry.snapshot().symbols == tuple(tickers)


class TestWildcardPolicy:
    """Wildcard and tickers are exclusive; the latest request wins."""

    def setup_method(self):
        self.registry = SubscriptionRegistry(max_subscriptions=3)

    def test_subscribe_all_replaces_tickers(self):
        self.registry.add('AAPL')
        self.registry.add('MSFT')

        delta = self.registry.subscribe_all()

        assert delta.added == (WILDCARD,)
        assert delta.removed == ('AAPL', 'MSFT')
        snapshot = self.registry.snapshot()
        assert snapshot.symbols == (WILDCARD,)
        assert snapshot.mode is SubscriptionMode.ALL_NEWS

    def test_adding_ticker_leaves_wildcard_mode(self):
        self.registry.subscribe_all()

        delta = self.registry.add('NVDA')

        assert delta.removed == (WILDCARD,)
        assert delta.added == ('NVDA',)
        assert self.registry.snapshot().mode is SubscriptionMode.TICKER_SPECIFIC
        assert not self.registry.wildcard_active

    def test_add_wildcard_is_subscribe_all(self):
        self.registry.add('AAPL')

        self.registry.add('*')

        assert self.registry.snapshot().symbols == (WILDCARD,)

    def test_replace_all_with_only_wildcard(self):
        self.registry.replace_all(['*'])

        assert self.registry.snapshot().mode is SubscriptionMode.ALL_NEWS


@pytest.mark.parametrize("raw,expected", [
    ('aapl', 'AAPL'),
    (' msft ', 'MSFT'),
    ('BINANCE:BTCUSDT', 'BINANCE:BTCUSDT'),
    ('brk.b', 'BRK.B'),
    ('*', '*'),
])
def test_normalize_symbol(raw, expected):
    assert normalize_symbol(raw) == expected


@pytest.mark.parametrize("raw", ['', '   ', 'A B', None, 12, 'X' * 25])
def test_normalize_symbol_rejects(raw):
    with pytest.raises(InvalidSubscriptionError):
        normalize_symbol(raw)
