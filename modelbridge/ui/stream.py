# terminal output pacing for streamed fragments
# fragments are shown at most max_token_interval apart and never held longer than max_buffering_delay

from __future__ import annotations

import asyncio
import sys
import time
from typing import AsyncIterable, Callable, NamedTuple, Optional, TextIO

from modelbridge.core import config
from modelbridge.core.errors import ProviderError

# buffers past this are flushed instead of growing
MAX_BUFFER_CHARS = 1024
# write() hands control back to the loop every this many characters
WRITE_CHUNK = 50


class BufferState(NamedTuple):
    is_buffering: bool
    buffer_length: int


class StreamOutput:
    def __init__(
        self,
        *,
        max_token_interval: Optional[int] = None,
        max_buffering_delay: Optional[int] = None,
        enable_buffering: Optional[bool] = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        on_token: Optional[Callable[[str], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        max_token_interval / max_buffering_delay are milliseconds.
        out / err default to the process stdout / stderr at write time.
        """
        self.max_token_interval = (
            config.STREAM_MAX_TOKEN_INTERVAL_MS if max_token_interval is None else max_token_interval
        )
        self.max_buffering_delay = (
            config.STREAM_MAX_BUFFERING_DELAY_MS if max_buffering_delay is None else max_buffering_delay
        )
        self.enable_buffering = config.STREAM_ENABLE_BUFFERING if enable_buffering is None else enable_buffering
        self._out = out
        self._err = err
        self._on_token = on_token
        self._on_complete = on_complete
        self._on_error = on_error
        self._clock = clock
        self._buffer = ""
        self._last_flush = clock()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._streaming = False

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    def start(self) -> None:
        self._streaming = True
        self._buffer = ""
        self._last_flush = self._clock()

    async def write_token(self, token: str) -> None:
        if not self._streaming:
            return
        now = self._clock()
        elapsed_ms = (now - self._last_flush) * 1000
        if not self.enable_buffering or elapsed_ms >= self.max_token_interval:
            # anything still buffered goes out ahead of this token
            self._buffer += token
            self._flush()
            return

        if len(self._buffer) + len(token) > MAX_BUFFER_CHARS:
            self._flush()
        self._buffer += token
        if len(self._buffer) > MAX_BUFFER_CHARS:
            self._flush()
            return

        if self._timer is None:
            delay_ms = min(self.max_token_interval, self.max_buffering_delay)
            self._timer = asyncio.get_running_loop().call_later(delay_ms / 1000, self._flush)

    async def write(self, text: str) -> None:
        """Feed text one character at a time so pacing applies inside large chunks too."""
        for i, char in enumerate(text, 1):
            await self.write_token(char)
            if i % WRITE_CHUNK == 0:
                await asyncio.sleep(0)

    def _flush(self) -> None:
        if self._buffer:
            self._emit(self._buffer)
            self._buffer = ""
            self._last_flush = self._clock()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _emit(self, text: str) -> None:
        out = self._out or sys.stdout
        out.write(text)
        out.flush()
        if self._on_token:
            self._on_token(text)

    def complete(self) -> None:
        self._flush()
        self._streaming = False
        if self._on_complete:
            self._on_complete()

    def error(self, exc: BaseException) -> None:
        self._streaming = False
        self._flush()
        message = exc.user_message() if isinstance(exc, ProviderError) else str(exc)
        err = self._err or sys.stderr
        err.write(f"\nError: {message}\n")
        err.flush()
        if self._on_error:
            self._on_error(exc)

    def buffer_state(self) -> BufferState:
        return BufferState(bool(self._buffer), len(self._buffer))

    async def consume(self, fragments: AsyncIterable[str], *, cumulative: bool = False) -> str:
        """Drive a whole fragment stream through the governor and return the full text.

        With cumulative=True each fragment is the text so far (what
        ModelAdapter.stream_generate_content yields) and only the new tail
        is written. A failure is reported through error() and re-raised.
        """
        self.start()
        text = ""
        try:
            async for fragment in fragments:
                if cumulative:
                    # a fragment that does not extend the previous text replaces it
                    delta = fragment[len(text):] if fragment.startswith(text) else fragment
                    text = fragment
                else:
                    delta = fragment
                    text += fragment
                if delta:
                    await self.write_token(delta)
        except Exception as e:
            self.error(e)
            raise
        self.complete()
        return text
