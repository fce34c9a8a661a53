"""Tests for the missing-track CSV report."""

from tunebridge.application.services.missing_report_service import build_missing_csv, csv_filename


class TestBuildMissingCsv:
    def test_header_sorting_and_delimiter(self) -> None:
        content = build_missing_csv(
            "Road Trip",
            ["zed — Zulu", "Abba — Gold — Waterloo", "abba — Arrival — Dancing Queen", "Solo Title"],
        )

        lines = content.decode("utf-8").splitlines()
        assert lines == [
            "Playlist;Artist;Album;Title",
            "Road Trip;;;Solo Title",
            "Road Trip;abba;Arrival;Dancing Queen",
            "Road Trip;Abba;Gold;Waterloo",
            "Road Trip;zed;;Zulu",
        ]

    def test_utf8_and_quoting(self) -> None:
        content = build_missing_csv("Mix", ["Sigur Rós — Hoppípolla; live"])
        text = content.decode("utf-8")
        assert 'Mix;Sigur Rós;;"Hoppípolla; live"' in text

    def test_empty_list_is_header_only(self) -> None:
        assert build_missing_csv("Mix", []).decode("utf-8") == "Playlist;Artist;Album;Title\n"


class TestCsvFilename:
    def test_unsafe_chars_replaced(self) -> None:
        assert csv_filename("Spotify - Road/Trip") == "Spotify - Road_Trip_missing.csv"
