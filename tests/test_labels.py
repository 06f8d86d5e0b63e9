from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pynodeloc.models import GeoSample, LocationRecord, LocationStatus
from pynodeloc.registry.labels import (
    decode_altitude,
    decode_latitude,
    decode_longitude,
    decode_timestamp,
    encode_altitude,
    encode_latitude,
    encode_longitude,
    encode_timestamp,
    is_valid_label_value,
    labels_to_record,
    record_to_labels,
    sanitize_place_name,
)

PREFIX = "phone.location"


def _dt() -> datetime:
    return datetime(2026, 10, 17, 10, 15, 0, tzinfo=UTC)


class TestSanitizePlaceName:
    def test_sao_paulo(self) -> None:
        value = sanitize_place_name("São Paulo, BR")
        assert value == "Sao_Paulo_BR"
        assert is_valid_label_value(value)

    def test_stable_under_repetition(self) -> None:
        for raw in ("São Paulo, BR", "  --Berlin, Germany--  ", "Zürich (ZH) / CH", "a - b"):
            once = sanitize_place_name(raw)
            assert sanitize_place_name(once) == once
            assert is_valid_label_value(once)

    def test_strips_separators(self) -> None:
        assert sanitize_place_name("__Berlin..") == "Berlin"

    def test_empty_falls_back_to_unknown(self) -> None:
        assert sanitize_place_name("") == "Unknown"
        assert sanitize_place_name("東京") == "Unknown"
        assert sanitize_place_name(None) == "Unknown"

    def test_truncated_to_label_length(self) -> None:
        value = sanitize_place_name("Llanfairpwllgwyngyll, " * 10)
        assert len(value) <= 63
        assert is_valid_label_value(value)

    def test_collisions_are_allowed(self) -> None:
        assert sanitize_place_name("Foo, Bar") == sanitize_place_name("Foo / Bar")


class TestCoordinateCodec:
    def test_hemisphere_suffixes(self) -> None:
        assert encode_latitude(52.52) == "52.520000N"
        assert encode_latitude(-33.8688) == "33.868800S"
        assert encode_longitude(13.405) == "13.405000E"
        assert encode_longitude(-70.6693) == "70.669300W"

    def test_decode(self) -> None:
        assert decode_latitude("33.868800S") == pytest.approx(-33.8688)
        assert decode_longitude("70.669300W") == pytest.approx(-70.6693)
        assert decode_latitude("52.520000N") == pytest.approx(52.52)

    def test_decode_plain_signed_values(self) -> None:
        assert decode_latitude("-33.8688") == pytest.approx(-33.8688)
        assert decode_longitude("13.40") == pytest.approx(13.40)

    def test_decode_garbage(self) -> None:
        with pytest.raises(ValueError):
            decode_latitude("north")

    def test_altitude(self) -> None:
        assert encode_altitude(34.24) == "34.2"
        assert encode_altitude(-12.5) == "b12.5"
        assert decode_altitude("b12.5") == -12.5
        assert decode_altitude("-3") == -3.0

    def test_timestamps(self) -> None:
        assert encode_timestamp(_dt()) == "20261017T101500Z"
        assert decode_timestamp("20261017T101500Z") == _dt()
        assert decode_timestamp("2026-10-17T10:15:00Z") == _dt()


class TestRecordLabels:
    def _record(self, **overrides: object) -> LocationRecord:
        values: dict[str, object] = {
            "sample": GeoSample(latitude=-33.8688, longitude=151.2093, altitude=-2.0, observed_at=_dt()),
            "place_name": "Sydney, Australia",
            "place_name_resolved_at": _dt(),
            "updated_at": _dt(),
        }
        values.update(overrides)
        return LocationRecord(**values)  # type: ignore[arg-type]

    def test_all_fields_written_and_valid(self) -> None:
        labels = record_to_labels(self._record(), PREFIX)
        assert labels == {
            "phone.location/latitude": "33.868800S",
            "phone.location/longitude": "151.209300E",
            "phone.location/altitude": "b2.0",
            "phone.location/city": "Sydney_Australia",
            "phone.location/city-updated": "20261017T101500Z",
            "phone.location/updated": "20261017T101500Z",
            "phone.location/status": "active",
        }
        assert all(is_valid_label_value(v) for v in labels.values() if v is not None)

    def test_missing_resolution_time_removes_label(self) -> None:
        labels = record_to_labels(self._record(place_name=None, place_name_resolved_at=None), PREFIX)
        assert labels["phone.location/city"] == "Unknown"
        assert labels["phone.location/city-updated"] is None

    def test_round_trip(self) -> None:
        labels = record_to_labels(self._record(status=LocationStatus.INACTIVE), PREFIX)
        record = labels_to_record({k: v for k, v in labels.items() if v is not None}, PREFIX)
        assert record is not None
        assert record.sample.latitude == pytest.approx(-33.8688)
        assert record.sample.longitude == pytest.approx(151.2093)
        assert record.sample.altitude == -2.0
        assert record.place_name == "Sydney_Australia"
        assert record.place_name_resolved_at == _dt()
        assert record.updated_at == _dt()
        assert record.status == LocationStatus.INACTIVE

    def test_no_coordinates_means_no_record(self) -> None:
        assert labels_to_record({"device-type": "phone"}, PREFIX) is None
        assert labels_to_record({"phone.location/latitude": "52.5N"}, PREFIX) is None
        assert labels_to_record(
            {"phone.location/latitude": "x", "phone.location/longitude": "13.4E"},
            PREFIX,
        ) is None

    def test_records_written_by_shell_updater(self) -> None:
        record = labels_to_record(
            {
                "phone.location/latitude": "52.52",
                "phone.location/longitude": "13.40",
                "phone.location/updated": "2026-10-17T10:15:00Z",
                "phone.location/city": "Berlin",
                "phone.location/status": "weird",
            },
            PREFIX,
        )
        assert record is not None
        assert record.sample.altitude == 0.0
        assert record.place_name_resolved_at is None
        assert record.status == LocationStatus.ACTIVE
        assert record.updated_at == _dt()
