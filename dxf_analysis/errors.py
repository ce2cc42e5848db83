"""
Exception hierarchy for DXF analysis.

Render errors are fatal to the render call that raised them: no partial
image is ever returned. Scoring has no error states.
"""


class DXFAnalysisError(Exception):
    """Base class for all errors raised by dxf_analysis."""


class DXFLoadError(DXFAnalysisError):
    """Erro ao ler ou interpretar um arquivo DXF."""


class RenderError(DXFAnalysisError):
    """Base class for calibrated renderer failures."""


class NoVisibleGeometry(RenderError):
    """Flattening produced no visible entity."""


class NoRenderableGeometry(RenderError):
    """No entity could be converted into a drawable primitive."""


class IndeterminateBounds(RenderError):
    """The global bounding box could not be computed."""


class ImageEncodingFailed(RenderError):
    """PNG encoding produced no data."""


class CyclicGeometry(RenderError):
    """A block insert references itself, directly or through nested inserts."""

    def __init__(self, block_name: str, path: tuple = ()):
        self.block_name = block_name
        self.path = tuple(path)
        chain = " -> ".join(self.path + (block_name,))
        super().__init__(f"Referência cíclica de bloco detectada: {chain}")


class RenderCancelled(DXFAnalysisError):
    """The caller cancelled the render before it completed."""
