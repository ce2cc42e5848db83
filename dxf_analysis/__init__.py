"""
dxf_analysis - pontuação de complexidade e pré-visualização calibrada de facas DXF.

A linha de comando fica em main.py; o modo pasta em ``python -m dxf_analysis.batch``.
"""

from dxf_analysis.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)

__version__ = "1.1.0"

__all__ = [
    "__version__",
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
]
