"""Tests for fuelwatch.core.exceptions."""

import pytest

from fuelwatch.core.exceptions import (
    AggregationError,
    ConfigError,
    FuelwatchError,
    SourceError,
    SourceFetchError,
    SourceFormatError,
    StorageError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy."""

    @pytest.mark.parametrize(
        "exc_class",
        [ConfigError, SourceError, StorageError, AggregationError],
    )
    def test_top_level_subclasses(self, exc_class):
        assert issubclass(exc_class, FuelwatchError)

    def test_fetch_error_is_source_error(self):
        assert issubclass(SourceFetchError, SourceError)

    def test_format_error_is_source_error(self):
        assert issubclass(SourceFormatError, SourceError)

    def test_storage_is_not_source_error(self):
        assert not issubclass(StorageError, SourceError)


class TestContext:
    def test_defaults_to_empty_dict(self):
        e = FuelwatchError("boom")
        assert e.context == {}
        assert str(e) == "boom"

    def test_carries_context(self):
        e = SourceFetchError("HTTP 503", context={"brand": "BP", "status_code": 503})
        assert e.context["status_code"] == 503

    def test_catchable_as_base(self):
        with pytest.raises(FuelwatchError):
            raise StorageError("disk full", context={"operation": "write"})
