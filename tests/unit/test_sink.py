"""Unit tests for log sinks."""

import io
from datetime import datetime, timedelta
from pathlib import Path

from netpipe.log.levels import Level
from netpipe.log.record import LogRecord
from netpipe.log.sink import FileSink, StreamSink


DAY = datetime(2024, 1, 15, 9, 0, 0)


def make_record(moment: datetime, text: str = "x") -> LogRecord:
    return LogRecord(Level.INFO, text, (), moment)


def write(sink, record: LogRecord) -> None:
    sink.write(record, record.render())


class TestStreamSink:
    """Tests for StreamSink."""

    def test_writes_one_line_per_record(self):
        stream = io.StringIO()
        sink = StreamSink(stream)

        write(sink, make_record(DAY, "first"))
        write(sink, make_record(DAY, "second"))
        sink.close()

        assert stream.getvalue().splitlines() == [
            "2024-01-15 09:00:00.000 INFO  first",
            "2024-01-15 09:00:00.000 INFO  second",
        ]
        assert not stream.closed


class TestFileSink:
    """Tests for FileSink naming and rotation."""

    def test_file_naming(self, log_dir: Path):
        sink = FileSink(str(log_dir), "server")
        assert sink.file_path("20240115") == log_dir / "server_20240115.log"
        assert sink.file_path("20240115", 3) == log_dir / "server_20240115_03.log"

    def test_empty_prefix(self, log_dir: Path):
        sink = FileSink(str(log_dir))
        write(sink, make_record(DAY))
        sink.close()

        assert [p.name for p in log_dir.iterdir()] == ["20240115.log"]

    def test_creates_directory(self, tmp_path: Path):
        directory = tmp_path / "nested" / "logs"
        sink = FileSink(str(directory), "app")
        write(sink, make_record(DAY))
        sink.close()

        assert (directory / "app_20240115.log").is_file()

    def test_daily_rotation(self, log_dir: Path):
        sink = FileSink(str(log_dir), "app")

        write(sink, make_record(DAY.replace(hour=23, minute=59), "before"))
        write(sink, make_record(DAY + timedelta(days=1), "after"))
        sink.close()

        first = (log_dir / "app_20240115.log").read_text().splitlines()
        second = (log_dir / "app_20240116.log").read_text().splitlines()
        assert len(first) == 1 and first[0].endswith("before")
        assert len(second) == 1 and second[0].endswith("after")

    def test_appends_to_existing_file(self, log_dir: Path):
        existing = log_dir / "app_20240115.log"
        existing.write_text("earlier line\n")

        sink = FileSink(str(log_dir), "app")
        write(sink, make_record(DAY, "later"))
        sink.close()

        lines = existing.read_text().splitlines()
        assert lines[0] == "earlier line"
        assert lines[1].endswith("later")

    def test_size_rotation(self, log_dir: Path):
        # Each rendered line is 32 bytes with its newline
        sink = FileSink(str(log_dir), "app", rotation_bytes=64)
        for _ in range(5):
            write(sink, make_record(DAY))
        sink.close()

        sizes = {p.name: len(p.read_text().splitlines()) for p in log_dir.iterdir()}
        assert sizes == {
            "app_20240115.log": 2,
            "app_20240115_01.log": 2,
            "app_20240115_02.log": 1,
        }
        assert sink.path == log_dir / "app_20240115_02.log"

    def test_size_rotation_resumes_at_last_file(self, log_dir: Path):
        (log_dir / "app_20240115.log").write_text("early\n")
        (log_dir / "app_20240115_01.log").write_text("later\n")

        sink = FileSink(str(log_dir), "app", rotation_bytes=64)
        write(sink, make_record(DAY, "newest"))
        sink.close()

        assert (log_dir / "app_20240115.log").read_text() == "early\n"
        lines = (log_dir / "app_20240115_01.log").read_text().splitlines()
        assert lines[0] == "later"
        assert lines[1].endswith("newest")
        assert sink.path == log_dir / "app_20240115_01.log"

    def test_oversized_record_still_written(self, log_dir: Path):
        sink = FileSink(str(log_dir), "app", rotation_bytes=8)
        write(sink, make_record(DAY, "a much longer message than eight bytes"))
        sink.close()

        assert (log_dir / "app_20240115.log").read_text().endswith("eight bytes\n")

    def test_retention_evicts_old_files(self, log_dir: Path):
        for name in (
            "app_20240110.log",
            "app_20240110_01.log",
            "app_20240112.log",
            "app_20240113.log",
            "other_20240101.log",
            "notes.txt",
        ):
            (log_dir / name).write_text("old\n")

        sink = FileSink(str(log_dir), "app", retention_days=2)
        write(sink, make_record(DAY))
        sink.close()

        assert sorted(p.name for p in log_dir.iterdir()) == [
            "app_20240113.log",
            "app_20240115.log",
            "notes.txt",
            "other_20240101.log",
        ]

    def test_zero_retention_keeps_everything(self, log_dir: Path):
        (log_dir / "app_20200101.log").write_text("ancient\n")

        sink = FileSink(str(log_dir), "app", retention_days=0)
        write(sink, make_record(DAY))
        sink.close()

        assert (log_dir / "app_20200101.log").exists()
