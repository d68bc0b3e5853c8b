"""Tests for gridcalc settings."""

from __future__ import annotations

import pydantic
import pytest

from gridcalc import Settings, settings
from gridcalc.calc._parser import _parse_cached


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.max_nesting_depth == 64
        assert s.max_reference_depth == 150
        assert s.worker_executor == "thread"
        assert s.worker_max_workers == 1

    def test_module_instance(self) -> None:
        assert isinstance(settings, Settings)

    def test_overrides(self) -> None:
        s = Settings(max_reference_depth=3, worker_executor="process")
        assert s.max_reference_depth == 3
        assert s.worker_executor == "process"

    def test_numeric_strings_coerced(self) -> None:
        assert Settings(max_nesting_depth="12").max_nesting_depth == 12

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            Settings(max_nesting_depth="deep")

    def test_parse_cache_sized_from_module_settings(self) -> None:
        assert _parse_cached.cache_info().maxsize == settings.parse_cache_size
        # A per-evaluator Settings does not resize the shared cache
        Settings(parse_cache_size=1)
        assert _parse_cached.cache_info().maxsize == settings.parse_cache_size
