"""
Template rendering and rasterization of quotes and contracts

TemplateRenderer turns a document into an HTML surface using the Jinja
templates under templates/documents. WeasyPrintRasterizer lays that HTML out
with WeasyPrint, rasterizes it with PyMuPDF and returns one tall bitmap.
"""
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from flask import render_template
from PIL import Image, ImageChops

from docexport.document import DocumentKind
from docexport.errors import RasterizeFailure, RenderFailure

logger = logging.getLogger(__name__)

# Height of the first layout page used by the rasterizer; longer documents
# are laid out again on a taller page.
LAYOUT_PAGE_HEIGHT_PX = 14000

# Padding around the sheet in CSS pixels, kept below the content when the
# bitmap is trimmed.
SHEET_PADDING_PX = 40


class RenderMode(str, Enum):
    PREVIEW = 'preview'    # bounded to one nominal page, scrollable
    GENERATE = 'generate'  # grows to fit every line item
    HIDDEN = 'hidden'      # same as generate, not shown on screen


TEMPLATES = {
    DocumentKind.QUOTE: 'documents/quote.html',
    DocumentKind.CONTRACT: 'documents/contract.html',
}


@dataclass
class Surface:
    html: str
    mode: RenderMode
    pixel_width: int
    max_height: Optional[int] = None
    ready: threading.Event = field(default_factory=threading.Event)

    def wait_ready(self, timeout):
        """Block until the renderer reports the layout complete"""
        return self.ready.wait(timeout)

    def clear(self):
        self.html = ''
        self.ready.clear()


@dataclass
class Bitmap:
    width: int
    height: int
    image: Image.Image


class TemplateRenderer:
    """Render documents through the application's Jinja templates"""

    def __init__(self, pixel_width=794, preview_height=1123):
        self.pixel_width = pixel_width
        self.preview_height = preview_height

    def render(self, document, mode, settings):
        mode = RenderMode(mode)
        template = TEMPLATES.get(document.kind)
        if template is None:
            raise RenderFailure(f'No template for document kind {document.kind!r}')

        html = render_template(
            template,
            document=document,
            totals=document.totals,
            settings=settings,
            mode=mode.value,
            page_width=self.pixel_width,
            page_height=self.preview_height,
            sheet_padding=SHEET_PADDING_PX,
        )
        surface = Surface(
            html=html,
            mode=mode,
            pixel_width=self.pixel_width,
            max_height=self.preview_height if mode is RenderMode.PREVIEW else None,
        )
        # Templates embed images as data URLs, so the layout is complete
        # as soon as the HTML exists.
        surface.ready.set()
        return surface


def trim_bottom(image, background='white', padding=0):
    """Drop trailing background rows, keeping up to `padding` of them below the content"""
    rgb = image.convert('RGB')
    diff = ImageChops.difference(rgb, Image.new('RGB', rgb.size, background))
    bbox = diff.getbbox()
    if bbox is None:
        return None
    return rgb.crop((0, 0, rgb.width, min(rgb.height, bbox[3] + padding)))


class WeasyPrintRasterizer:
    """Capture a rendered surface as a single tall bitmap"""

    def __init__(self, base_url=None, max_layout_passes=4):
        self.base_url = base_url
        self.max_layout_passes = max_layout_passes

    def layout(self, surface, target_pixel_width):
        """
        Lay the surface out on a single page tall enough for all of it.

        Content that overflows the layout page is laid out again on a page
        as tall as all the pages of the previous pass, until it fits on one.
        """
        from weasyprint import CSS, HTML

        html = HTML(string=surface.html, base_url=self.base_url)
        page_height = LAYOUT_PAGE_HEIGHT_PX
        for _ in range(self.max_layout_passes):
            page_css = CSS(string=(
                f'@page {{ size: {target_pixel_width}px {page_height}px; margin: 0 }}'
            ))
            document = html.render(stylesheets=[page_css])
            if len(document.pages) == 1:
                return document
            logger.debug('Layout overflowed %s page(s) of %spx, retrying',
                         len(document.pages), page_height)
            page_height *= len(document.pages)
        raise RasterizeFailure(f'Layout still spans several pages at {page_height}px')

    def rasterize(self, surface, scale=2, target_pixel_width=794):
        """
        Rasterize a surface.

        Args:
            surface: Surface produced by TemplateRenderer
            scale: multiplier applied to the target width for print sharpness
            target_pixel_width: width of the surface in CSS pixels

        Returns:
            Bitmap of width target_pixel_width * scale
        """
        import fitz  # PyMuPDF

        try:
            pdf_bytes = self.layout(surface, target_pixel_width).write_pdf()
        except RasterizeFailure:
            raise
        except Exception as e:
            raise RasterizeFailure(f'Layout failed: {e}') from e

        try:
            pdf = fitz.open(stream=pdf_bytes, filetype='pdf')
            page = pdf[0]
            zoom = target_pixel_width * scale / page.rect.width
            pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            image = Image.frombytes('RGB', (pixmap.width, pixmap.height), pixmap.samples)
            pdf.close()
        except Exception as e:
            raise RasterizeFailure(f'Rasterization failed: {e}') from e

        image = trim_bottom(image, padding=SHEET_PADDING_PX * scale)
        if image is None:
            raise RasterizeFailure('Rendered surface is blank')

        logger.debug('Rasterized surface into %sx%s bitmap', image.width, image.height)
        return Bitmap(width=image.width, height=image.height, image=image)
