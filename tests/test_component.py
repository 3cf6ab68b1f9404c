"""Tests for ImageView and load sessions."""

import asyncio
import base64
import io
import unittest
from typing import Dict, List, Optional

from PIL import Image

from imagesource.component import ImageView
from imagesource.domain import ImageData, Uri
from imagesource.exceptions import (
    ImageHttpError,
    ImageLoadError,
    PayloadDecodeError,
    SourceFormatError,
)
from imagesource.interfaces import MemoryDisplay, RecordingNotifier
from imagesource.options import ResolverConfig
from imagesource.session import CancelSignal, LoadSession
from imagesource.state import ComponentState

URL_A = "https://example.com/a.png"
URL_B = "https://example.com/b.png"


def _image(name, width=4, height=4):
    return ImageData("image/png", width, height, b"", source=name)


def _png_base64(size=(6, 2)):
    buf = io.BytesIO()
    Image.new("RGBA", size, (0, 128, 255, 255)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


class FakeLoader:
    """Loader double: results per URI, optional gates that hold a load open."""

    def __init__(self):
        self.results: Dict[str, object] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.started: Dict[str, asyncio.Event] = {}
        self.calls: List[tuple] = []
        self.signals: List[CancelSignal] = []

    def gate(self, uri: str) -> asyncio.Event:
        self.gates[uri] = asyncio.Event()
        self.started[uri] = asyncio.Event()
        return self.gates[uri]

    async def load(
        self, uri: Uri, use_cache: bool, cancel_signal: CancelSignal
    ) -> Optional[ImageData]:
        key = str(uri)
        self.calls.append((key, use_cache))
        self.signals.append(cancel_signal)
        if key in self.started:
            self.started[key].set()
        if key in self.gates:
            await self.gates[key].wait()
        result = self.results[key]
        if isinstance(result, BaseException):
            raise result
        return result


class ImageViewTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.loader = FakeLoader()
        self.display = MemoryDisplay()
        self.notifier = RecordingNotifier()
        self.opened = []
        self.failures = []

    def make_view(self, **kwargs) -> ImageView:
        view = ImageView(
            self.loader, display=self.display, notifier=self.notifier, **kwargs
        )
        view.opened.connect(lambda: self.opened.append(view.display.current))
        view.failed.connect(self.failures.append)
        return view


class LoadTest(ImageViewTestCase):
    async def test_uri_loaded(self):
        image = _image("a")
        self.loader.results[URL_A] = image
        view = self.make_view()

        session = view.set_source(URL_A)
        self.assertIsInstance(session, LoadSession)
        await view.wait_idle()

        self.assertIs(view.state, ComponentState.LOADED)
        self.assertIs(self.display.current, image)
        self.assertEqual(self.notifier.states, ["Loading", "Loaded"])
        self.assertEqual(self.opened, [image])
        self.assertEqual(self.loader.calls, [(URL_A, False)])
        self.assertIs(session.outcome, ComponentState.LOADED)
        self.assertTrue(session.done)

    async def test_cache_flag_passed_to_loader(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_view(config=ResolverConfig(cache_enabled=True))
        view.set_source(URL_A)
        await view.wait_idle()
        self.assertEqual(self.loader.calls, [(URL_A, True)])

    async def test_handle(self):
        image = _image("handle")
        view = self.make_view()
        view.set_source(image)
        await view.wait_idle()
        self.assertIs(self.display.current, image)
        self.assertIs(view.state, ComponentState.LOADED)
        self.assertEqual(self.loader.calls, [])

    async def test_embedded_png_skips_loader(self):
        view = self.make_view()
        view.set_source("data:image/png;base64," + _png_base64())
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.LOADED)
        self.assertEqual((self.display.current.width, self.display.current.height), (6, 2))
        self.assertEqual(self.display.current.mime_type, "image/png")
        self.assertEqual(self.loader.calls, [])

    async def test_embedded_offloaded(self):
        view = self.make_view(config=ResolverConfig(offload_decoding=True))
        view.set_source(_png_base64((3, 3)))
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.LOADED)
        self.assertEqual(self.display.current.width, 3)

    async def test_embedded_svg(self):
        view = self.make_view()
        view.set_source(
            "data:image/svg+xml,<svg xmlns='http://www.w3.org/2000/svg' "
            "width='12' height='8'></svg>"
        )
        await view.wait_idle()
        self.assertEqual(self.display.current.kind, "vector")
        self.assertEqual((self.display.current.width, self.display.current.height), (12, 8))

    async def test_zero_size_image_unloaded(self):
        image = _image("empty", 0, 0)
        view = self.make_view()
        view.set_source(image)
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.UNLOADED)
        self.assertIs(self.display.current, image)
        self.assertEqual(self.notifier.states, ["Loading", "Unloaded"])
        self.assertEqual(self.opened, [])
        self.assertEqual(self.failures, [])

    async def test_loader_returning_none(self):
        self.loader.results[URL_A] = None
        view = self.make_view()
        view.set_source(URL_A)
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.UNLOADED)
        self.assertEqual(self.opened, [])

    async def test_clear_after_load(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_view()
        view.set_source(URL_A)
        await view.wait_idle()

        session = view.set_source(None)
        await view.wait_idle()
        self.assertIsNone(self.display.current)
        self.assertIs(view.state, ComponentState.UNLOADED)
        self.assertIs(session.outcome, ComponentState.UNLOADED)
        self.assertEqual(self.notifier.states, ["Loading", "Loaded", "Unloaded"])
        self.assertEqual(len(self.opened), 1)
        self.assertEqual(self.failures, [])

    async def test_same_value_is_ignored(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_view()
        first = view.set_source(URL_A)
        self.assertIsNone(view.set_source(URL_A))
        await view.wait_idle()
        self.assertIs(view.current_session, first)
        self.assertEqual(len(self.loader.calls), 1)
        self.assertEqual(view.generation, 1)


class FailureTest(ImageViewTestCase):
    async def test_loader_error_reported_once(self):
        error = ImageHttpError("HTTP 404", uri=URL_A, status_code=404)
        self.loader.results[URL_A] = error
        view = self.make_view()
        session = view.set_source(URL_A)
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()

        self.assertIs(view.state, ComponentState.FAILED)
        self.assertEqual(self.failures, [error])
        self.assertIs(session.error, error)
        self.assertEqual(self.notifier.states, ["Loading", "Failed"])
        self.assertEqual(self.opened, [])

    async def test_foreign_errors_are_wrapped(self):
        cause = RuntimeError("socket closed")
        self.loader.results[URL_A] = cause
        view = self.make_view()
        view.set_source(URL_A)
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()

        self.assertEqual(len(self.failures), 1)
        self.assertIsInstance(self.failures[0], ImageLoadError)
        self.assertIs(self.failures[0].__cause__, cause)

    async def test_format_error(self):
        view = self.make_view()
        view.set_source("")
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()
        self.assertIsInstance(self.failures[0], SourceFormatError)
        self.assertEqual(self.notifier.states, ["Loading", "Failed"])
        self.assertEqual(self.loader.calls, [])

    async def test_undecodable_data(self):
        view = self.make_view()
        view.set_source("data:image/png,%FF")
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()
        self.assertIsInstance(self.failures[0], PayloadDecodeError)
        self.assertEqual(self.loader.calls, [])

    async def test_display_error_reported_as_failure(self):
        class RejectingDisplay(MemoryDisplay):
            def attach(self, image):
                if image is not None:
                    raise RuntimeError("display gone")
                super().attach(image)

        self.display = RejectingDisplay()
        self.loader.results[URL_A] = _image("a")
        view = self.make_view()
        session = view.set_source(URL_A)
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()

        self.assertIs(view.state, ComponentState.FAILED)
        self.assertEqual(self.notifier.states, ["Loading", "Failed"])
        self.assertEqual(len(self.failures), 1)
        self.assertIsInstance(self.failures[0].__cause__, RuntimeError)
        self.assertEqual(self.opened, [])
        self.assertIsNone(session._task.exception())

    async def test_detach_error_reported_as_failure(self):
        class BrokenDisplay(MemoryDisplay):
            def attach(self, image):
                raise RuntimeError("display gone")

        self.display = BrokenDisplay()
        view = self.make_view()
        view.set_source(_image("a"))
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()

        self.assertIs(view.state, ComponentState.FAILED)
        self.assertEqual(len(self.failures), 1)

    async def test_recovers_after_failure(self):
        self.loader.results[URL_A] = ImageHttpError("HTTP 500", status_code=500)
        self.loader.results[URL_B] = _image("b")
        view = self.make_view()
        view.set_source(URL_A)
        with self.assertLogs("imagesource.session", level="WARNING"):
            await view.wait_idle()
        view.set_source(URL_B)
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.LOADED)
        self.assertEqual(
            self.notifier.states, ["Loading", "Failed", "Unloaded", "Loading", "Loaded"]
        )


class SupersessionTest(ImageViewTestCase):
    async def test_newer_source_wins(self):
        image_a, image_b = _image("a"), _image("b")
        self.loader.results[URL_A] = image_a
        self.loader.results[URL_B] = image_b
        gate_a = self.loader.gate(URL_A)
        view = self.make_view()

        session_a = view.set_source(URL_A)
        await self.loader.started[URL_A].wait()
        session_b = view.set_source(URL_B)
        await view.wait_idle()

        gate_a.set()
        await asyncio.sleep(0)

        self.assertTrue(session_a.cancel_signal.is_cancelled)
        self.assertTrue(self.loader.signals[0].is_cancelled)
        self.assertIsNone(session_a.outcome)
        self.assertIs(session_b.outcome, ComponentState.LOADED)
        self.assertNotIn(image_a, self.display.history)
        self.assertIs(self.display.current, image_b)
        self.assertEqual(self.opened, [image_b])
        self.assertEqual(self.failures, [])

    async def test_superseded_before_start(self):
        self.loader.results[URL_A] = _image("a")
        self.loader.results[URL_B] = _image("b")
        view = self.make_view()
        view.set_source(URL_A)
        view.set_source(URL_B)
        await view.wait_idle()
        self.assertEqual(self.loader.calls, [(URL_B, False)])
        self.assertEqual(self.notifier.states, ["Loading", "Loaded"])

    async def test_superseded_failure_is_silent(self):
        self.loader.results[URL_A] = ImageHttpError("HTTP 503", status_code=503)
        self.loader.results[URL_B] = _image("b")
        gate_a = self.loader.gate(URL_A)
        view = self.make_view()

        view.set_source(URL_A)
        await self.loader.started[URL_A].wait()
        view.set_source(URL_B)
        gate_a.set()
        await view.wait_idle()
        self.assertEqual(self.failures, [])
        self.assertIs(view.state, ComponentState.LOADED)

    async def test_clear_while_loading(self):
        self.loader.results[URL_A] = _image("a")
        gate_a = self.loader.gate(URL_A)
        view = self.make_view()

        view.set_source(URL_A)
        await self.loader.started[URL_A].wait()
        view.set_source(None)
        await view.wait_idle()
        gate_a.set()
        await asyncio.sleep(0)

        self.assertIsNone(self.display.current)
        self.assertIs(view.state, ComponentState.UNLOADED)
        self.assertEqual(self.notifier.states, ["Loading", "Unloaded"])
        self.assertEqual(self.opened, [])

    async def test_long_burst_of_assignments(self):
        """Only the last of many back-to-back assignments loads."""
        view = self.make_view()
        urls = [f"https://example.com/{idx}.png" for idx in range(1500)]
        for url in urls:
            self.loader.results[url] = _image(url)
            view.set_source(url)

        session = view.current_session
        await view.wait_idle()

        self.assertIs(view.state, ComponentState.LOADED)
        self.assertIs(session.outcome, ComponentState.LOADED)
        self.assertEqual(self.display.current.source, urls[-1])
        self.assertEqual(self.loader.calls, [(urls[-1], False)])
        self.assertEqual(self.failures, [])
        self.assertEqual(len(self.opened), 1)

    async def test_burst_while_loading(self):
        self.loader.results[URL_A] = _image("a")
        self.loader.gate(URL_A)
        view = self.make_view()
        view.set_source(URL_A)
        await self.loader.started[URL_A].wait()

        for idx in range(1200):
            url = f"https://example.com/{idx}.png"
            self.loader.results[url] = _image(url)
            view.set_source(url)
        await view.wait_idle()

        self.assertEqual(self.display.current.source, "https://example.com/1199.png")
        self.assertEqual(self.failures, [])

    async def test_close_cancels(self):
        self.loader.results[URL_A] = _image("a")
        self.loader.gate(URL_A)
        view = self.make_view()
        session = view.set_source(URL_A)
        await self.loader.started[URL_A].wait()
        await view.close()
        self.assertTrue(session.done)
        self.assertTrue(session.cancel_signal.is_cancelled)
        self.assertEqual(self.opened, [])


class LazyLoadingTest(ImageViewTestCase):
    def make_lazy_view(self) -> ImageView:
        return self.make_view(config=ResolverConfig(lazy_loading=True), visible=False)

    async def test_staged_until_visible(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_lazy_view()

        self.assertIsNone(view.set_source(URL_A))
        self.assertEqual(view.pending_source, URL_A)
        await asyncio.sleep(0)
        self.assertEqual(self.loader.calls, [])

        session = view.set_visible(True)
        self.assertIsNotNone(session)
        self.assertIsNone(view.pending_source)
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.LOADED)

    async def test_newer_staged_value_replaces_older(self):
        self.loader.results[URL_B] = _image("b")
        view = self.make_lazy_view()
        view.set_source(URL_A)
        view.set_source(URL_B)
        view.set_visible(True)
        await view.wait_idle()
        self.assertEqual(self.loader.calls, [(URL_B, False)])

    async def test_disabling_lazy_loading_promotes(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_lazy_view()
        view.set_source(URL_A)
        view.set_lazy_loading(False)
        await view.wait_idle()
        self.assertIs(view.state, ComponentState.LOADED)
        self.assertFalse(view.lazy_loading_enabled)

    async def test_clear_is_never_staged(self):
        self.loader.results[URL_A] = _image("a")
        view = self.make_view(config=ResolverConfig(lazy_loading=True))
        view.set_source(URL_A)
        await view.wait_idle()

        view.set_visible(False)
        session = view.set_source(None)
        self.assertIsNotNone(session)
        await view.wait_idle()
        self.assertIsNone(self.display.current)

    async def test_staging_cancels_in_flight_session(self):
        self.loader.results[URL_A] = _image("a")
        self.loader.gate(URL_A)
        view = self.make_view(config=ResolverConfig(lazy_loading=True))
        session_a = view.set_source(URL_A)
        await self.loader.started[URL_A].wait()

        view.set_visible(False)
        self.assertIsNone(view.set_source(URL_B))
        await session_a.acknowledged()
        self.assertTrue(session_a.cancel_signal.is_cancelled)
        self.assertEqual(view.pending_source, URL_B)
        self.assertEqual(self.opened, [])


if __name__ == "__main__":
    unittest.main()
