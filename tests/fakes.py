"""Stand-ins for the renderer and rasterizer that need no browser engine."""

import threading

from PIL import Image

from docexport.rendering import Bitmap, Surface


class FakeRenderer:
    """Renders a placeholder surface; can be told to fail or never become ready."""

    def __init__(self, fail=False, never_ready=False):
        self.fail = fail
        self.never_ready = never_ready
        self.rendered = []

    def render(self, document, mode, settings):
        if self.fail:
            raise RuntimeError('template exploded')
        self.rendered.append((document, mode))
        surface = Surface(html=f'<p>{document.number}</p>', mode=mode, pixel_width=794)
        if not self.never_ready:
            surface.ready.set()
        return surface


class FakeRasterizer:
    """Returns a solid bitmap of the requested width and a fixed height.

    When ``hold`` is set, rasterize() blocks until ``release`` is set, so tests
    can start a second export while the first is still in flight.
    """

    def __init__(self, height=3000, fail=False, hold=False):
        self.height = height
        self.fail = fail
        self.hold = hold
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0
        self.surfaces = []

    def rasterize(self, surface, scale=2, target_pixel_width=794):
        self.calls += 1
        self.surfaces.append(surface)
        self.entered.set()
        if self.hold:
            self.release.wait(5)
        if self.fail:
            raise RuntimeError('resource blocked')
        width = target_pixel_width * scale
        image = Image.new('RGB', (width, self.height), 'navy')
        return Bitmap(width=width, height=self.height, image=image)

