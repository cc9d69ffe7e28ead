"""
netpipe Log Writer Module
Asynchronous leveled writer: producers enqueue records, one consumer thread
renders and writes them to stdout, stderr or a daily-rotated file.
"""

import queue
import sys
import threading

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..common.constants import DEFAULT_QUEUE_CAPACITY, POLL_INTERVAL
from ..common.utils import caller_location
from ..exceptions import InvalidArgumentError, NotInitializedError
from .levels import Level, coerce_level
from .record import LogRecord
from .sink import FileSink, StreamSink, report_error


class Output(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    FILE = "file"


class WriterSettings(BaseModel):
    """Writer configuration; replaced as a whole by Writer.configure()."""

    model_config = ConfigDict(frozen=True)

    level: Level = Level.INFO
    output: Output = Output.STDOUT
    directory: str = "logs"
    file_prefix: str = ""
    capture_caller: bool = False
    retention_days: int = Field(default=0, ge=0)  # 0 = keep all files
    queue_capacity: int = Field(default=DEFAULT_QUEUE_CAPACITY, gt=0)
    rotation_bytes: Optional[int] = Field(default=None, gt=0)  # None = daily rotation only

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> Level:
        return coerce_level(value)

    @field_validator("output", mode="before")
    @classmethod
    def _parse_output(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


def build_writer_settings(**kwargs: Any) -> WriterSettings:
    """Build WriterSettings, reporting bad values as InvalidArgumentError."""
    try:
        return WriterSettings(**kwargs)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid log writer settings: {e}") from e


class _Barrier:
    """Queue marker acknowledged by the consumer once reached."""

    __slots__ = ("event",)

    def __init__(self):
        self.event = threading.Event()


_QUIT = object()


class Writer:
    """
    Asynchronous log writer.

    Example usage:
        writer = Writer()
        writer.initialize(level=Level.DEBUG, output=Output.FILE,
                          directory="logs", file_prefix="server")
        writer.info("listening on %s", address)
        writer.flush()
        writer.finalize()

    Records from one thread are written in the order they were logged.
    A full queue blocks the logging thread instead of dropping records.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        exit_func: Callable[[int], Any] = sys.exit,
    ):
        self._clock = clock
        self._exit = exit_func

        self._lock = threading.Lock()
        self._lifecycle = threading.RLock()
        self._settings: Optional[WriterSettings] = None
        self._level = Level.INFO
        self._capture_caller = False
        self._queue: Optional[queue.Queue] = None
        self._consumer: Optional[threading.Thread] = None

    @property
    def initialized(self) -> bool:
        return self._queue is not None

    @property
    def settings(self) -> Optional[WriterSettings]:
        with self._lock:
            return self._settings

    @property
    def level(self) -> Level:
        return self._level

    def set_level(self, level: Union[Level, int, str]) -> None:
        """Change the threshold; applies to records logged from now on."""
        level = coerce_level(level)
        with self._lock:
            self._level = level
            if self._settings is not None:
                self._settings = self._settings.model_copy(update={"level": level})

    def initialize(
        self,
        level: Union[Level, int, str] = Level.INFO,
        output: Union[Output, str] = Output.STDOUT,
        directory: str = "logs",
        file_prefix: str = "",
        capture_caller: bool = False,
        retention_days: int = 0,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        rotation_bytes: Optional[int] = None,
    ) -> None:
        """
        Start the writer, replacing any previous configuration.

        A previous consumer is drained and stopped first.

        Raises:
            UnknownLevelError: If level is not a known level
            InvalidArgumentError: If any other setting is invalid
        """
        settings = build_writer_settings(
            level=coerce_level(level),
            output=output,
            directory=directory,
            file_prefix=file_prefix,
            capture_caller=capture_caller,
            retention_days=retention_days,
            queue_capacity=queue_capacity,
            rotation_bytes=rotation_bytes,
        )
        self.configure(settings)

    def configure(self, settings: WriterSettings) -> None:
        """Start the writer from a settings object."""
        with self._lifecycle:
            self.finalize()

            if settings.output == Output.FILE:
                sink = FileSink(
                    settings.directory,
                    settings.file_prefix,
                    settings.retention_days,
                    settings.rotation_bytes,
                )
            elif settings.output == Output.STDERR:
                sink = StreamSink(sys.stderr)
            else:
                sink = StreamSink(sys.stdout)

            records: queue.Queue = queue.Queue(maxsize=settings.queue_capacity)
            consumer = threading.Thread(
                target=self._consume,
                args=(records, sink),
                name="netpipe-log-writer",
                daemon=True,
            )

            consumer.start()

            with self._lock:
                self._settings = settings
                self._level = settings.level
                self._capture_caller = settings.capture_caller
                self._queue = records
                self._consumer = consumer

    def finalize(self) -> None:
        """Write everything queued, stop the consumer and close the sink. Idempotent."""
        with self._lifecycle:
            with self._lock:
                records, self._queue = self._queue, None
                consumer, self._consumer = self._consumer, None
                self._settings = None

            if records is None:
                return

            self._wait_for(records, consumer)
            records.put(_QUIT)
            if consumer is not None:
                consumer.join()

    def flush(self) -> None:
        """Return once every record logged before this call has been written."""
        with self._lock:
            records, consumer = self._queue, self._consumer
        if records is None:
            return
        self._wait_for(records, consumer)

    def fatal(self, fmt: str, *args: Any) -> None:
        """Log at FATAL, flush, then call exit_func(1)."""
        self._log(Level.FATAL, fmt, args)
        self.flush()
        self._exit(1)

    def error(self, fmt: str, *args: Any) -> None:
        self._log(Level.ERROR, fmt, args)

    def warn(self, fmt: str, *args: Any) -> None:
        self._log(Level.WARN, fmt, args)

    def info(self, fmt: str, *args: Any) -> None:
        self._log(Level.INFO, fmt, args)

    def debug(self, fmt: str, *args: Any) -> None:
        self._log(Level.DEBUG, fmt, args)

    def trace(self, fmt: str, *args: Any) -> None:
        self._log(Level.TRACE, fmt, args)

    def log(self, level: Union[Level, int, str], fmt: str, *args: Any, caller: Optional[str] = None) -> None:
        """
        Log at an arbitrary level. Unlike fatal(), never exits.

        Args:
            caller: "file:line" to record instead of this call's location
        """
        self._log(coerce_level(level), fmt, args, caller)

    def _log(self, level: Level, fmt: str, args: tuple, caller: Optional[str] = None) -> bool:
        records = self._queue
        if records is None:
            raise NotInitializedError()

        if level > self._level:
            return False

        timestamp = self._clock()
        if self._capture_caller:
            caller = caller or caller_location(2) or "?"
        else:
            caller = None

        records.put(LogRecord(level, fmt, args, timestamp, caller))
        return True

    @staticmethod
    def _wait_for(records: queue.Queue, consumer: Optional[threading.Thread]) -> None:
        barrier = _Barrier()
        records.put(barrier)
        # A consumer that exited after a concurrent finalize() never acknowledges
        while not barrier.event.wait(POLL_INTERVAL):
            if consumer is None or not consumer.is_alive():
                return

    def _consume(self, records: queue.Queue, sink: Union[StreamSink, FileSink]) -> None:
        try:
            while True:
                item = records.get()
                if item is _QUIT:
                    break
                self._handle(item, sink, records)

            # Producers that raced finalize()
            while True:
                try:
                    item = records.get_nowait()
                except queue.Empty:
                    break
                if item is not _QUIT:
                    self._handle(item, sink, records)
        finally:
            try:
                sink.close()
            except OSError as e:
                report_error(f"cannot close log destination: {e}")

    def _handle(self, item: Any, sink: Union[StreamSink, FileSink], records: queue.Queue) -> None:
        if isinstance(item, _Barrier):
            self._flush_sink(sink)
            item.event.set()
            return

        try:
            sink.write(item, item.render())
        except Exception as e:
            report_error(f"cannot write log record: {e}")

        if records.empty():
            self._flush_sink(sink)

    @staticmethod
    def _flush_sink(sink: Union[StreamSink, FileSink]) -> None:
        try:
            sink.flush()
        except OSError as e:
            report_error(f"cannot flush log destination: {e}")
