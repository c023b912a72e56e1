"""Unit tests for the dependency injection container."""

from __future__ import annotations

import pytest

from kvbase.infrastructure.container import Container


class Clock:
    pass


@pytest.mark.unit
class TestContainer:
    """Tests for Container."""

    def test_singleton(self, container: Container) -> None:
        clock = Clock()
        container.register_singleton(Clock, clock)

        assert container.resolve(Clock) is clock
        assert container.has(Clock)

    def test_factory_runs_once(self, container: Container) -> None:
        calls: list[int] = []

        def make(_: Container) -> Clock:
            calls.append(1)
            return Clock()

        container.register_factory(Clock, make)

        assert not calls
        first = container.resolve(Clock)
        assert container.resolve(Clock) is first
        assert len(calls) == 1

    def test_missing_registration(self, container: Container) -> None:
        with pytest.raises(KeyError, match="No registration"):
            container.resolve(Clock)

    def test_clear(self, container: Container) -> None:
        container.register_singleton(Clock, Clock())
        container.clear()

        assert not container.has(Clock)
