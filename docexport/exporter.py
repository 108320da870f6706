"""
Document exporter

Runs the export pipeline for one document at a time:
render -> rasterize -> (paginate) -> assemble. Only one export may use the
shared render target at once; a request arriving while another is in flight
is rejected without producing anything.
"""
import copy
import logging
import re
import threading
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Optional

from docexport.errors import ExportCancelled, ExportError, RasterizeFailure, RenderFailure
from docexport.paginator import crop_pages, paginate
from docexport.rendering import RenderMode

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = 'Generation Failed'


class ExportState(str, Enum):
    IDLE = 'idle'
    RENDERING = 'rendering'
    RASTERIZING = 'rasterizing'
    PAGINATING = 'paginating'
    ASSEMBLING = 'assembling'
    DONE = 'done'
    FAILED = 'failed'


class ExportFormat(str, Enum):
    PDF = 'pdf'
    IMAGE = 'image'


class ExportStatus(str, Enum):
    DONE = 'done'
    FAILED = 'failed'
    BUSY = 'busy'
    CANCELLED = 'cancelled'


MIMETYPES = {
    ExportFormat.PDF: 'application/pdf',
    ExportFormat.IMAGE: 'image/png',
}

EXTENSIONS = {
    ExportFormat.PDF: 'pdf',
    ExportFormat.IMAGE: 'png',
}


@dataclass(frozen=True)
class ExportOptions:
    page_width_mm: float = 210.0
    page_height_mm: float = 297.0
    target_pixel_width: int = 794
    scale: int = 2
    render_timeout: float = 1.5
    jpeg_quality: int = 95

    @classmethod
    def from_config(cls, config):
        return cls(
            page_width_mm=float(config.get('EXPORT_PAGE_WIDTH_MM', 210.0)),
            page_height_mm=float(config.get('EXPORT_PAGE_HEIGHT_MM', 297.0)),
            target_pixel_width=int(config.get('EXPORT_TARGET_PIXEL_WIDTH', 794)),
            scale=int(config.get('EXPORT_RASTER_SCALE', 2)),
            render_timeout=float(config.get('EXPORT_RENDER_TIMEOUT', 1.5)),
            jpeg_quality=int(config.get('EXPORT_JPEG_QUALITY', 95)),
        )


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    mimetype: str
    data: bytes
    page_count: int = 1


@dataclass(frozen=True)
class ExportOutcome:
    status: ExportStatus
    artifact: Optional[ExportArtifact] = None
    message: Optional[str] = None

    @property
    def ok(self):
        return self.status is ExportStatus.DONE


def artifact_filename(number, fmt):
    """<documentNumber>.<ext>, with path separators and control characters replaced"""
    safe = re.sub(r'[\\/:*?"<>|\x00-\x1f]', '_', (number or '').strip()) or 'document'
    return f'{safe}.{EXTENSIONS[ExportFormat(fmt)]}'


def encode_png(bitmap):
    output = BytesIO()
    bitmap.image.save(output, format='PNG')
    return output.getvalue()


def assemble_pdf(bitmap, slices, page_width_mm, jpeg_quality=95):
    """One fixed-size page per slice; the resolution maps the bitmap width onto the page width"""
    pages = crop_pages(bitmap.image, slices)
    dpi = bitmap.width / (page_width_mm / 25.4)
    output = BytesIO()
    pages[0].save(
        output,
        format='PDF',
        save_all=True,
        append_images=pages[1:],
        resolution=dpi,
        quality=jpeg_quality,
    )
    return output.getvalue()


class DocumentExporter:
    """Orchestrates rendering, rasterization, pagination and assembly"""

    def __init__(self, renderer, rasterizer, options=None):
        self.renderer = renderer
        self.rasterizer = rasterizer
        self.options = options or ExportOptions()
        self._lock = threading.Lock()
        self._state = ExportState.IDLE
        self._target = None

    @property
    def state(self):
        return self._state

    @property
    def busy(self):
        return self._lock.locked()

    def _enter(self, state, document):
        logger.debug('Export %s: %s -> %s', document.number, self._state.value, state.value)
        self._state = state

    @staticmethod
    def _check_cancel(cancel):
        if cancel is not None and cancel.is_set():
            raise ExportCancelled('Export cancelled')

    def preview(self, document, settings):
        """Surface for on-screen display; no pagination is applied"""
        return self.renderer.render(copy.deepcopy(document), RenderMode.PREVIEW, settings)

    def export(self, document, fmt, settings, cancel=None):
        """
        Export a document as a PNG image or a paginated PDF.

        Args:
            document: Quote or Contract; a deep copy is exported so later edits
                do not affect an export in flight
            fmt: 'pdf' or 'image'
            settings: CompanySettings for the template
            cancel: optional threading.Event aborting the export when set

        Returns:
            ExportOutcome; failures never raise past this method
        """
        fmt = ExportFormat(fmt)

        if not self._lock.acquire(blocking=False):
            logger.warning('Export of %s ignored: another export is in progress', document.number)
            return ExportOutcome(ExportStatus.BUSY, message='An export is already in progress')

        snapshot = copy.deepcopy(document)
        try:
            artifact = self._run(snapshot, fmt, settings, cancel)
            self._enter(ExportState.DONE, snapshot)
            logger.info('Exported %s (%s page(s))', artifact.filename, artifact.page_count)
            return ExportOutcome(ExportStatus.DONE, artifact=artifact)
        except ExportCancelled:
            self._enter(ExportState.IDLE, snapshot)
            logger.info('Export of %s cancelled', snapshot.number)
            return ExportOutcome(ExportStatus.CANCELLED, message='Export cancelled')
        except ExportError as e:
            self._enter(ExportState.FAILED, snapshot)
            logger.error('Export of %s failed: %s', snapshot.number, e)
            return ExportOutcome(ExportStatus.FAILED, message=FAILURE_MESSAGE)
        except Exception:
            self._enter(ExportState.FAILED, snapshot)
            logger.exception('Unexpected error exporting %s', snapshot.number)
            return ExportOutcome(ExportStatus.FAILED, message=FAILURE_MESSAGE)
        finally:
            if self._target is not None:
                self._target.clear()
                self._target = None
            self._lock.release()

    def _run(self, document, fmt, settings, cancel):
        options = self.options

        self._enter(ExportState.RENDERING, document)
        try:
            surface = self.renderer.render(document, RenderMode.GENERATE, settings)
        except ExportError:
            raise
        except Exception as e:
            raise RenderFailure(f'Template rendering failed: {e}') from e
        self._target = surface
        if not surface.wait_ready(options.render_timeout):
            raise RenderFailure(f'Renderer did not finish within {options.render_timeout}s')
        self._check_cancel(cancel)

        self._enter(ExportState.RASTERIZING, document)
        try:
            bitmap = self.rasterizer.rasterize(
                surface, scale=options.scale, target_pixel_width=options.target_pixel_width)
        except ExportError:
            raise
        except Exception as e:
            raise RasterizeFailure(f'Rasterizer failed: {e}') from e
        if bitmap is None or not bitmap.width or not bitmap.height:
            raise RasterizeFailure('Rasterizer returned an empty bitmap')
        self._check_cancel(cancel)

        filename = artifact_filename(document.number, fmt)
        if fmt is ExportFormat.IMAGE:
            self._enter(ExportState.ASSEMBLING, document)
            return ExportArtifact(filename, MIMETYPES[fmt], encode_png(bitmap), page_count=1)

        self._enter(ExportState.PAGINATING, document)
        slices = paginate(bitmap.width, bitmap.height, options.page_width_mm, options.page_height_mm)

        self._enter(ExportState.ASSEMBLING, document)
        data = assemble_pdf(bitmap, slices, options.page_width_mm, options.jpeg_quality)
        return ExportArtifact(filename, MIMETYPES[fmt], data, page_count=len(slices))
