"""
Exceptions raised inside the document export pipeline
"""


class ExportError(Exception):
    """Base class for failures inside the export pipeline"""


class RenderFailure(ExportError):
    """Template renderer raised or never signalled completion"""


class RasterizeFailure(ExportError):
    """Rasterizer could not capture the rendered surface"""


class ExportCancelled(ExportError):
    """Export aborted through its cancellation token"""


class ValidationFailure(Exception):
    """Document cannot be saved; carries the messages shown to the user"""

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__('; '.join(self.messages))
