"""netpipe Log Package."""

from .levels import Level, level_from_name, coerce_level
from .record import LogRecord
from .sink import StreamSink, FileSink
from .writer import Output, WriterSettings, Writer, build_writer_settings
from .registry import get_writer, finalize_all
from .handler import WriterHandler, level_from_logging

__all__ = [
    'Level', 'level_from_name', 'coerce_level',
    'LogRecord',
    'StreamSink', 'FileSink',
    'Output', 'WriterSettings', 'Writer', 'build_writer_settings',
    'get_writer', 'finalize_all',
    'WriterHandler', 'level_from_logging',
]
