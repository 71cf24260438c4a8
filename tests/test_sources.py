"""Tests for the pointtiles.sources module."""

import json
import math

import pytest

from pointtiles.geodesy import SWEREF99_TM, GeodeticCoordinate, ProjectedMeters
from pointtiles.palette import CategoryPalette
from pointtiles.sources import (AttributeDecodeError, CSVFeatureSource,
                                FeatureRecord, GeoJSONFeatureSource,
                                InMemoryFeatureSource, decode_attributes,
                                load_features)


class TestDecodeAttributes:
    """Tests for decode_attributes."""

    def test_decodes_legacy_bytes(self):
        """Swedish characters in cp1252 should decode to text."""
        decoded = decode_attributes({"NAMN": b"G\xf6teborg \xe5\xe4\xc5\xc4\xd6"}, "cp1252")
        assert decoded == {"NAMN": "Göteborg åäÅÄÖ"}

    def test_keeps_text(self):
        assert decode_attributes({"KKOD": "355"}) == {"KKOD": "355"}

    def test_undefined_byte_raises(self):
        """Bytes undefined in the encoding should raise AttributeDecodeError."""
        with pytest.raises(AttributeDecodeError) as excinfo:
            decode_attributes({"NAMN": b"bad \x81 byte"}, "cp1252")
        assert excinfo.value.name == "NAMN"
        assert "NAMN" in str(excinfo.value)

    def test_decode_error_is_value_error(self):
        assert issubclass(AttributeDecodeError, ValueError)


class TestLoadFeatures:
    """Tests for load_features."""

    def _records(self):
        return [
            FeatureRecord("0", ProjectedMeters(689323.231, 6539980.38), {"KKOD": b"355"}),
            FeatureRecord("1", ProjectedMeters(674768.606, 6580479.43), {"KKOD": b"\x81"}),
            FeatureRecord("2", ProjectedMeters(math.nan, 6529507.61), {"KKOD": b"351"}),
            FeatureRecord("3", ProjectedMeters(666048.223, 6529507.61), {"KKOD": b"999"}),
        ]

    def test_skips_and_reports_bad_records(self):
        """Undecodable and unprojectable records should be skipped, the rest kept."""
        source = InMemoryFeatureSource(self._records(), projection=SWEREF99_TM)
        features, problems = load_features(source)
        assert [f.key for f in features] == ["0", "3"]
        assert [p.key for p in problems] == ["1", "2"]
        assert "KKOD" in problems[0].reason
        assert "projectable" in problems[1].reason

    def test_inverse_projects_positions(self):
        source = InMemoryFeatureSource(self._records(), projection=SWEREF99_TM)
        features, _ = load_features(source)
        assert features[0].position.latitude == pytest.approx(58.957488, abs=1e-5)
        assert features[0].position.longitude == pytest.approx(18.292103, abs=1e-5)

    def test_colors_from_palette(self):
        """Categories should be colored through the supplied palette."""
        source = InMemoryFeatureSource(self._records(), projection=SWEREF99_TM)
        palette = CategoryPalette({"355": "red"}, default="black")
        features, _ = load_features(source, palette=palette)
        assert features[0].category == "355"
        assert features[0].color == (255, 0, 0, 255)
        assert features[1].color == (0, 0, 0, 255)

    def test_custom_category_field(self):
        records = [FeatureRecord("0", GeodeticCoordinate(59, 18), {"TYPE": "351"})]
        features, _ = load_features(InMemoryFeatureSource(records), category_field="TYPE")
        assert features[0].color == (0, 255, 0, 255)

    def test_missing_category_uses_default(self):
        records = [FeatureRecord("0", GeodeticCoordinate(59, 18), {})]
        features, _ = load_features(InMemoryFeatureSource(records))
        assert features[0].category is None
        assert features[0].color == (0, 0, 255, 255)

    def test_projected_record_without_projection_raises(self):
        records = [FeatureRecord("0", ProjectedMeters(1, 2), {})]
        with pytest.raises(ValueError):
            load_features(InMemoryFeatureSource(records))

    def test_preserves_input_order(self):
        records = [FeatureRecord(str(i), GeodeticCoordinate(59, 18 + i / 10), {}) for i in range(10)]
        features, _ = load_features(InMemoryFeatureSource(records))
        assert [f.key for f in features] == [str(i) for i in range(10)]


class TestGeodeticBounds:
    """Tests for FeatureSource.native_bounds and geodetic_bounds."""

    def test_geodetic_source(self):
        records = [FeatureRecord("0", GeodeticCoordinate(59, 18), {}),
                   FeatureRecord("1", GeodeticCoordinate(58, 19), {})]
        source = InMemoryFeatureSource(records)
        assert source.native_bounds() == (18, 58, 19, 59)
        box = source.geodetic_bounds()
        assert (box.north, box.east, box.south, box.west) == (59, 19, 58, 18)

    def test_projected_source_encloses_features(self):
        """The inverse-projected box should contain every feature position."""
        records = [FeatureRecord(str(i), p, {}) for i, p in enumerate([
            ProjectedMeters(689323.231, 6539980.38),
            ProjectedMeters(674768.606, 6580479.43),
            ProjectedMeters(666048.223, 6529507.61),
        ])]
        source = InMemoryFeatureSource(records, projection=SWEREF99_TM)
        box = source.geodetic_bounds()
        for record in records:
            assert box.contains(SWEREF99_TM.to_coordinate(record.position))

    def test_empty_source_raises(self):
        with pytest.raises(ValueError):
            InMemoryFeatureSource([]).native_bounds()


class TestCSVFeatureSource:
    """Tests for CSVFeatureSource."""

    def _write(self, path, encoding="cp1252"):
        text = ("x;y;KKOD;NAMN\n"
                "689323.231;6539980.38;355;Nyn\xe4shamn\n"
                "674768.606;6580479.43;351;Stockholm\n"
                "666048.223;6529507.61;other;S\xf6dert\xe4lje\n")
        path.write_bytes(text.encode(encoding))

    def test_reads_projected_records(self, temp_dir):
        path = temp_dir / "points.csv"
        self._write(path)
        source = CSVFeatureSource(path, projection=SWEREF99_TM, sep=";")
        records = list(source.records())
        assert len(records) == 3
        assert records[0].position == ProjectedMeters(689323.231, 6539980.38)
        assert records[0].attributes["NAMN"] == "Nynäshamn".encode("cp1252")

    def test_load_decodes_per_feature(self, temp_dir):
        path = temp_dir / "points.csv"
        self._write(path)
        source = CSVFeatureSource(path, projection=SWEREF99_TM, sep=";")
        features, problems = load_features(source, encoding="cp1252")
        assert problems == []
        assert features[2].attributes["NAMN"] == "Södertälje"
        assert features[1].position.latitude == pytest.approx(59.326855, abs=1e-5)

    def test_undecodable_row_is_skipped(self, temp_dir):
        path = temp_dir / "points.csv"
        path.write_bytes(b"x,y,KKOD\n18.0,59.0,355\n18.1,59.1,\x81\n")
        features, problems = load_features(CSVFeatureSource(path), encoding="cp1252")
        assert [f.key for f in features] == ["0"]
        assert [p.key for p in problems] == ["1"]

    def test_native_bounds(self, temp_dir):
        path = temp_dir / "points.csv"
        self._write(path)
        source = CSVFeatureSource(path, projection=SWEREF99_TM, sep=";")
        assert source.native_bounds() == (666048.223, 6529507.61, 689323.231, 6580479.43)

    def test_missing_columns_raise(self, temp_dir):
        path = temp_dir / "points.csv"
        path.write_text("lon,lat\n18,59\n")
        with pytest.raises(ValueError):
            list(CSVFeatureSource(path).records())

    def test_coordinates_only(self, temp_dir):
        """A file with only the x/y columns should still yield every point."""
        path = temp_dir / "points.csv"
        path.write_text("x,y\n689323.231,6539980.38\n674768.606,6580479.43\n")
        features, problems = load_features(CSVFeatureSource(path, projection=SWEREF99_TM))
        assert problems == []
        assert [f.key for f in features] == ["0", "1"]
        assert features[0].attributes == {}
        assert features[0].category is None
        assert features[1].position.latitude == pytest.approx(59.326855, abs=1e-5)


class TestGeoJSONFeatureSource:
    """Tests for GeoJSONFeatureSource."""

    def test_reads_points_only(self, temp_dir):
        path = temp_dir / "points.geojson"
        path.write_text(json.dumps({
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "id": "a",
                 "geometry": {"type": "Point", "coordinates": [18.07, 59.33]},
                 "properties": {"KKOD": 355, "NAMN": "Stockholm", "EMPTY": None}},
                {"type": "Feature",
                 "geometry": {"type": "LineString", "coordinates": [[18, 59], [19, 60]]},
                 "properties": {}},
                {"type": "Feature",
                 "geometry": {"type": "Point", "coordinates": [17.88, 58.87]},
                 "properties": {"KKOD": "351"}},
            ],
        }), encoding="utf-8")
        source = GeoJSONFeatureSource(path)
        records = list(source.records())
        assert [r.key for r in records] == ["a", "2"]
        assert records[0].position == GeodeticCoordinate(59.33, 18.07)
        assert records[0].attributes == {"KKOD": "355", "NAMN": "Stockholm", "EMPTY": ""}
        assert source.projection is None
        assert source.native_bounds() == (17.88, 58.87, 18.07, 59.33)
