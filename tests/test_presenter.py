from __future__ import annotations

import io
import tempfile
import unittest
from pathlib import Path

import conftest  # noqa: F401  (import side-effect: sys.path bootstrap)

from tease.presenter import CLEAR_LINE, Presenter
from tease.reporter import Reporter


class _BrokenAfter(io.RawIOBase):
    def __init__(self, data: bytes, fail_after: int) -> None:
        self._buf = io.BytesIO(data)
        self._reads = 0
        self._fail_after = fail_after

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._buf.seek(offset, whence)

    def read(self, n: int = -1) -> bytes:
        self._reads += 1
        if self._reads > self._fail_after:
            raise OSError(5, "Input/output error")
        return self._buf.read(n)


class _ClosedPipe(io.BytesIO):
    def __init__(self, ok_writes: int = 0) -> None:
        super().__init__()
        self._ok_writes = ok_writes

    def write(self, b) -> int:
        if self._ok_writes <= 0:
            raise BrokenPipeError(32, "Broken pipe")
        self._ok_writes -= 1
        return super().write(b)


class TestPresenter(unittest.TestCase):
    def setUp(self) -> None:
        self.out = io.BytesIO()

    def test_render_tail_overwrites_in_place(self) -> None:
        pres = Presenter(self.out)
        pres.render_tail("building a")
        pres.render_tail("building b")
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + b"building a" + CLEAR_LINE + b"building b")

    def test_finalize_adds_one_newline_after_a_fragment(self) -> None:
        pres = Presenter(self.out)
        pres.render_tail("c")
        pres.finalize()
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + b"c\n")

    def test_finalize_is_silent_when_nothing_was_shown(self) -> None:
        pres = Presenter(self.out)
        pres.finalize()
        self.assertEqual(self.out.getvalue(), b"")

    def test_width_clips_and_carriage_return_is_stripped(self) -> None:
        pres = Presenter(self.out, width=6)
        pres.render_tail("0123456789")
        pres.render_tail("abc\r")
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + b"01234" + CLEAR_LINE + b"abc")

    def test_render_full_streams_everything_in_chunks(self) -> None:
        payload = bytes(range(256)) * 10
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "scratch"
            path.write_bytes(payload)
            with open(path, "rb", buffering=0) as handle:
                handle.seek(100)
                pres = Presenter(self.out, chunk_bytes=7)
                self.assertTrue(pres.render_full(handle))
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + payload)

    def test_render_full_read_failure_keeps_what_was_streamed(self) -> None:
        err = io.StringIO()
        pres = Presenter(self.out, chunk_bytes=4, reporter=Reporter(stream=err))
        ok = pres.render_full(_BrokenAfter(b"abcdefghijkl", fail_after=2))
        self.assertFalse(ok)
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + b"abcdefgh")
        self.assertIn("while dumping it", err.getvalue())

    def test_closed_stdout_stops_drawing_without_raising(self) -> None:
        err = io.StringIO()
        pres = Presenter(_ClosedPipe(), reporter=Reporter(stream=err))
        pres.render_tail("a")
        pres.render_tail("b")
        pres.finalize()
        self.assertTrue(pres.broken)
        self.assertFalse(pres.shown_any)
        self.assertEqual(err.getvalue().count("can't write to stdout"), 1)

    def test_render_full_write_failure_is_not_a_read_failure(self) -> None:
        err = io.StringIO()
        out = _ClosedPipe(ok_writes=2)
        pres = Presenter(out, chunk_bytes=4, reporter=Reporter(stream=err))
        self.assertFalse(pres.render_full(io.BytesIO(b"abcdefghijkl")))
        self.assertEqual(out.getvalue(), CLEAR_LINE + b"abcd")
        self.assertIn("can't write to stdout", err.getvalue())
        self.assertNotIn("couldn't read", err.getvalue())

    def test_render_full_seek_failure_is_a_read_failure(self) -> None:
        class _NoSeek(io.BytesIO):
            def seek(self, offset: int, whence: int = 0) -> int:
                raise OSError(29, "Illegal seek")

        err = io.StringIO()
        pres = Presenter(self.out, reporter=Reporter(stream=err))
        self.assertFalse(pres.render_full(_NoSeek(b"abc")))
        self.assertEqual(self.out.getvalue(), CLEAR_LINE)
        self.assertIn("couldn't read the temp file while dumping it", err.getvalue())
        self.assertFalse(pres.broken)

    def test_width_is_counted_in_code_points(self) -> None:
        pres = Presenter(self.out, width=4)
        pres.render_tail("ééééé")
        self.assertEqual(self.out.getvalue(), CLEAR_LINE + "ééé".encode("utf-8"))


if __name__ == "__main__":
    unittest.main()
