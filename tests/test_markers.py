"""Tests for markers.py - update source marker files."""

from pathlib import Path

from boxmod.markers import UpdateSourceMarkers, read_markers


class TestReadMarkers:
    """Tests for read_markers function."""

    def test_empty_source(self, tmp_path: Path) -> None:
        """An update source without markers reports none."""
        assert read_markers(tmp_path) == UpdateSourceMarkers()

    def test_all_markers(self, tmp_path: Path) -> None:
        """Each marker file is detected."""
        for name in ("dry_run", "init_partitions", "no_reboot"):
            (tmp_path / name).touch()

        markers = read_markers(tmp_path)
        assert markers.dry_run is True
        assert markers.init_partitions is True
        assert markers.no_reboot is True

    def test_missing_source(self, tmp_path: Path) -> None:
        """A missing update source yields no markers."""
        markers = read_markers(tmp_path / "not-mounted")
        assert markers == UpdateSourceMarkers()

    def test_marker_directory_counts(self, tmp_path: Path) -> None:
        """A directory named like a marker still counts."""
        (tmp_path / "no_reboot").mkdir()
        assert read_markers(tmp_path).no_reboot is True
