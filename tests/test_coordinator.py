"""
tests/test_coordinator.py

Unit tests for the Coordinator state machine and its interaction with the
prompt session.
─────────────────────────────────────────────────────────────────────────
Most tests drive Coordinator.handle() directly with hand-built events so
every transition is deterministic. The threaded tests at the bottom run the
real loop with a scripted InteractionSession.

Run with:
    python -m pytest tests/test_coordinator.py -v
"""

import io
import os
import sys
import threading
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from filter_engine import FilterEngine, Line
from stream_proxy.coordinator import Coordinator, Mode
from stream_proxy.events import (
    Disposition,
    KeypressDetected,
    LineArrived,
    Outcome,
    SessionEnded,
    SessionRequest,
    Stream,
    StreamClosed,
)
from stream_proxy.session import InteractionSession
from stream_proxy.sink import OutputSink

OUT, ERR = Stream.STDOUT, Stream.STDERR


class _FakeSession:
    """Stands in for InteractionSession; the test posts SessionEnded itself."""

    created = 0

    def __init__(self, post):
        type(self).created += 1
        self.post = post
        self.started = False

    def start(self):
        self.started = True


def _line(stream, text):
    return LineArrived(stream, Line(text))


class _CoordinatorTestCase(unittest.TestCase):

    def setUp(self):
        _FakeSession.created = 0
        self.console = io.StringIO()
        self.engine = FilterEngine()
        self.sink = OutputSink(console=self.console)
        self.coord = Coordinator(self.engine, self.sink, session_factory=_FakeSession)

    def feed(self, *events):
        result = None
        for event in events:
            result = self.coord.handle(event)
        return result

    def assertInvariant(self):
        self.assertGreaterEqual(self.engine.lines_total, self.engine.lines_suppressed)
        self.assertEqual(
            self.engine.lines_total - self.engine.lines_suppressed,
            self.sink.lines_emitted,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Test: Passthrough
# ─────────────────────────────────────────────────────────────────────────────

class TestPassthrough(_CoordinatorTestCase):

    def test_lines_filtered_immediately(self):
        self.engine.add_ignore_substring("noise")
        self.feed(_line(OUT, "hello"), _line(ERR, "noise here"), _line(ERR, "world"))
        self.assertEqual(self.console.getvalue(), "hello\nworld\n")
        self.assertEqual(self.engine.stats(), (1, 3))
        self.assertInvariant()

    def test_snippets_applied(self):
        self.engine.import_snippets([r"s/^\[\w+\] //"])
        self.feed(_line(OUT, "[INFO] started"))
        self.assertEqual(self.console.getvalue(), "started\n")

    def test_unterminated_fragment_echoed_verbatim(self):
        self.feed(LineArrived(OUT, Line("prompt: ", False)))
        self.assertEqual(self.console.getvalue(), "prompt: ")

    def test_child_finished_after_both_streams_close(self):
        self.assertIsNone(self.feed(StreamClosed(OUT)))
        self.assertIs(self.feed(StreamClosed(ERR)), Disposition.CHILD_FINISHED)

    def test_lines_after_one_stream_closes_still_processed(self):
        self.feed(StreamClosed(ERR), _line(OUT, "late"))
        self.assertEqual(self.console.getvalue(), "late\n")


# ─────────────────────────────────────────────────────────────────────────────
# Test: Interactive mode
# ─────────────────────────────────────────────────────────────────────────────

class TestInteractive(_CoordinatorTestCase):

    def test_keypress_starts_session(self):
        self.feed(KeypressDetected())
        self.assertIs(self.coord.mode, Mode.INTERACTIVE)
        self.assertEqual(_FakeSession.created, 1)

    def test_second_keypress_ignored(self):
        self.feed(KeypressDetected(), KeypressDetected())
        self.assertEqual(_FakeSession.created, 1)

    def test_lines_buffered_and_not_counted(self):
        self.feed(KeypressDetected(), _line(OUT, "a"), _line(ERR, "b"), _line(OUT, "c"))
        self.assertEqual(self.console.getvalue(), "")
        self.assertEqual(self.engine.stats(), (0, 0))
        self.assertEqual(list(self.coord.buffers[OUT]), [Line("a"), Line("c")])
        self.assertEqual(list(self.coord.buffers[ERR]), [Line("b")])

    def test_resume_drains_stdout_then_stderr(self):
        self.feed(
            KeypressDetected(),
            _line(ERR, "e1"), _line(OUT, "o1"), _line(ERR, "e2"), _line(OUT, "o2"),
            SessionEnded(Outcome.RESUME),
        )
        self.assertEqual(self.console.getvalue(), "o1\no2\ne1\ne2\n")
        self.assertIs(self.coord.mode, Mode.PASSTHROUGH)
        self.assertEqual(self.engine.stats(), (0, 4))
        self.assertFalse(any(self.coord.buffers.values()))

    def test_drain_happens_before_newer_lines(self):
        self.feed(
            KeypressDetected(), _line(ERR, "old"),
            SessionEnded(Outcome.RESUME), _line(OUT, "new"),
        )
        self.assertEqual(self.console.getvalue(), "old\nnew\n")

    def test_rules_added_during_session_apply_to_buffered_lines(self):
        request = SessionRequest("ignore-substring", "spam")
        self.feed(
            KeypressDetected(), _line(OUT, "spam 1"), _line(OUT, "ham"),
            request, SessionEnded(Outcome.RESUME),
        )
        self.assertEqual(request.reply.get_nowait(), (True, ""))
        self.assertEqual(self.console.getvalue(), "ham\n")
        self.assertEqual(self.engine.stats(), (1, 2))
        self.assertInvariant()

    def test_bad_rule_reported_not_installed(self):
        request = SessionRequest("snippet", "s/(/x/")
        self.feed(KeypressDetected(), request)
        ok, text = request.reply.get_nowait()
        self.assertFalse(ok)
        self.assertIn("s/(/x/", text)
        self.assertEqual(self.engine.substitutions, [])

    def test_pats_and_stats_requests(self):
        self.engine.add_ignore_line("x")
        pats = SessionRequest("pats")
        stats = SessionRequest("stats")
        self.feed(KeypressDetected(), _line(OUT, "buffered"), pats, stats)
        self.assertEqual(pats.reply.get_nowait(), (True, self.engine.describe_patterns()))
        ok, text = stats.reply.get_nowait()
        self.assertTrue(ok)
        self.assertIn("Suppressed 0/0 lines.", text)
        self.assertIn("Buffered: 1 stdout, 0 stderr", text)

    def test_quit_discards_buffers(self):
        result = self.feed(
            KeypressDetected(), _line(OUT, "lost"), _line(ERR, "lost too"),
            SessionEnded(Outcome.QUIT),
        )
        self.assertIs(result, Disposition.KILL_REQUESTED)
        self.assertEqual(self.console.getvalue(), "")
        self.assertEqual(self.engine.stats(), (0, 0))
        self.assertFalse(any(self.coord.buffers.values()))

    def test_streams_closing_mid_session_wait_for_session(self):
        self.assertIsNone(self.feed(
            KeypressDetected(), _line(OUT, "last words"),
            StreamClosed(OUT), StreamClosed(ERR),
        ))
        self.assertIs(self.feed(SessionEnded(Outcome.RESUME)), Disposition.CHILD_FINISHED)
        self.assertEqual(self.console.getvalue(), "last words\n")

    def test_streams_closing_mid_session_then_quit(self):
        result = self.feed(
            KeypressDetected(), StreamClosed(OUT), StreamClosed(ERR),
            SessionEnded(Outcome.QUIT),
        )
        self.assertIs(result, Disposition.KILL_REQUESTED)

    def test_resume_rearms_keypress_watcher(self):
        class _Watcher:
            rearmed = 0

            def rearm(self):
                self.rearmed += 1

        watcher = _Watcher()
        self.coord._keypress = watcher
        self.feed(KeypressDetected(), SessionEnded(Outcome.RESUME))
        self.assertEqual(watcher.rearmed, 1)

    def test_invariant_across_mode_switches(self):
        self.engine.add_ignore_re(r"^drop")
        events = []
        for round_no in range(3):
            events += [_line(OUT, f"keep {round_no}"), _line(ERR, f"drop {round_no}")]
            events += [KeypressDetected(), _line(OUT, f"drop b{round_no}"), _line(ERR, f"keep b{round_no}")]
            events += [SessionEnded(Outcome.RESUME)]
        self.feed(*events)
        self.assertEqual(self.engine.stats(), (6, 12))
        self.assertEqual(self.sink.lines_emitted, 6)
        self.assertInvariant()

    def test_unknown_event_rejected(self):
        with self.assertRaises(TypeError):
            self.coord.handle(object())


# ─────────────────────────────────────────────────────────────────────────────
# Test: full loop with a scripted prompt
# ─────────────────────────────────────────────────────────────────────────────

def _scripted(inputs):
    pending = list(inputs)

    def read_line(prompt):
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


class TestRunLoop(unittest.TestCase):

    def _run(self, events, inputs):
        console, prompt_out = io.StringIO(), []
        engine = FilterEngine()
        sink = OutputSink(console=console)
        coord = Coordinator(
            engine,
            sink,
            session_factory=lambda post: InteractionSession(
                post, read_line=_scripted(inputs), write=prompt_out.append,
            ),
        )
        for event in events:
            coord.post(event)

        result = {}
        worker = threading.Thread(target=lambda: result.setdefault("d", coord.run()))
        worker.start()
        worker.join(timeout=10)
        self.assertFalse(worker.is_alive(), "coordinator did not finish")
        return result["d"], console.getvalue(), "".join(prompt_out), engine, sink

    def test_resume_after_adding_rules(self):
        disposition, output, prompt, engine, sink = self._run(
            [
                _line(OUT, "before"),
                KeypressDetected(),
                _line(OUT, "spam spam"),
                _line(ERR, "DEBUG: x=1"),
                StreamClosed(OUT),
                StreamClosed(ERR),
            ],
            ["ignore-substring spam", "snippet s/^DEBUG: //", "pats", ""],
        )
        self.assertIs(disposition, Disposition.CHILD_FINISHED)
        self.assertEqual(output, "before\nx=1\n")
        self.assertIn(" * ignoreSubstring\nspam\n", prompt)
        self.assertEqual(engine.stats(), (1, 3))
        self.assertEqual(sink.lines_emitted, 2)

    def test_quit(self):
        disposition, output, _, engine, _ = self._run(
            [KeypressDetected(), _line(OUT, "never shown")],
            ["quit"],
        )
        self.assertIs(disposition, Disposition.KILL_REQUESTED)
        self.assertEqual(output, "")
        self.assertEqual(engine.stats(), (0, 0))

    def test_bad_snippet_keeps_session_alive(self):
        disposition, output, prompt, engine, _ = self._run(
            [KeypressDetected(), _line(OUT, "abc"), StreamClosed(OUT), StreamClosed(ERR)],
            ["snippet s/a", "snippet s/b/B/", ""],
        )
        self.assertIs(disposition, Disposition.CHILD_FINISHED)
        self.assertIn("substitution too short", prompt)
        self.assertEqual(len(engine.substitutions), 1)
        self.assertEqual(output, "aBc\n")


if __name__ == "__main__":
    unittest.main()
