"""Tests for the session facade."""

from datetime import datetime

import pytest

from host.share import DirectoryShareSink
from tracklog.codec import PointKind
from tracklog.engine import CONTINUOUS_REQUEST, MANUAL_REQUEST, Sample
from tracklog.errors import UnknownTrack
from tracklog.session import CSV_MIME, TrackSession
from tracklog.settings import KEY_CONTINUOUS, MemoryConfigStore, Settings
from tracklog.store import TrackFileStore


class _FakeSource:
    def __init__(self):
        self.requests = []
        self.callback = None

    def configure(self, request):
        self.requests.append(request)

    def subscribe(self, callback):
        self.callback = callback

    def unsubscribe(self):
        self.callback = None


class _RecordingSink:
    def __init__(self):
        self.calls = []

    def share(self, path, mime_type, title):
        self.calls.append((path, mime_type, title))
        return path


def _session(tmp_path, config=None, source=None):
    config = config if config is not None else MemoryConfigStore()
    return TrackSession(Settings(config), TrackFileStore(tmp_path / "tracks"), source,
                        clock=lambda: datetime(2024, 1, 1, 12))


class TestOpen:
    def test_bootstraps_and_starts(self, tmp_path):
        source = _FakeSource()
        session = _session(tmp_path, source=source)
        session.open()
        assert session.catalog.current_name == "Standard"
        assert source.requests == [MANUAL_REQUEST]
        assert source.callback is not None

    def test_restores_continuous_mode(self, tmp_path):
        source = _FakeSource()
        session = _session(tmp_path, MemoryConfigStore({KEY_CONTINUOUS: "true"}), source)
        session.open()
        assert session.mode.continuous
        assert source.requests == [CONTINUOUS_REQUEST]

    def test_close_unsubscribes(self, tmp_path):
        source = _FakeSource()
        session = _session(tmp_path, source=source)
        session.open()
        session.close()
        assert source.callback is None


class TestModeAndScene:
    def test_set_mode_persists(self, tmp_path):
        config = MemoryConfigStore()
        session = _session(tmp_path, config)
        session.open()
        session.set_mode(True)
        assert config.get(KEY_CONTINUOUS) == "true"
        assert session.mode.continuous

    def test_recording_flows_into_scene(self, tmp_path):
        source = _FakeSource()
        session = _session(tmp_path, source=source)
        session.open()
        session.set_mode(True)
        source.callback(Sample(1.0, 1.0, datetime(2024, 1, 1, 11)))
        source.callback(Sample(2.0, 2.0, datetime(2024, 1, 1, 11, 0, 2)))
        session.engine.manual_trigger()

        recs = session.store.read_all("track_standard.csv")
        assert [r.kind for r in recs] == [PointKind.CONTINUOUS, PointKind.CONTINUOUS, PointKind.HIGHLIGHT]
        scene = session.scene()
        assert len(scene.polylines) == 1
        assert [m.label for m in scene.markers] == ["Standard (Highlight)"]
        assert scene.camera.zoom == 18


class TestShare:
    def test_share_to_sink(self, tmp_path):
        session = _session(tmp_path)
        session.open(start_location=False)
        sink = _RecordingSink()
        session.share("Standard", sink)
        [(path, mime, title)] = sink.calls
        assert path == tmp_path / "tracks" / "track_standard.csv"
        assert mime == CSV_MIME == "text/csv"
        assert "Standard" in title

    def test_share_to_directory(self, tmp_path):
        session = _session(tmp_path)
        session.open(start_location=False)
        dest = session.share("Standard", DirectoryShareSink(tmp_path / "out"))
        assert dest == tmp_path / "out" / "track_standard.csv"
        assert dest.read_text().startswith("Timestamp,Type")

    def test_share_unknown(self, tmp_path):
        session = _session(tmp_path)
        session.open(start_location=False)
        with pytest.raises(UnknownTrack):
            session.share("Nope", _RecordingSink())

    def test_share_missing_file(self, tmp_path):
        session = _session(tmp_path)
        session.open(start_location=False)
        (tmp_path / "tracks" / "track_standard.csv").unlink()
        with pytest.raises(FileNotFoundError):
            session.share("Standard", _RecordingSink())
