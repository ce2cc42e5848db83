"""
Cooperative cancellation for long renders.
"""

import threading
from typing import Optional

from dxf_analysis.errors import RenderCancelled


class CancellationToken:
    """Thread-safe cancellation flag checked by the renderer between phases.

    Example:
        token = CancellationToken()
        timer = token.cancel_after(15.0)
        try:
            renderer.render(path, doc, cancellation=token)
        finally:
            timer.cancel()
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise RenderCancelled once ``cancel`` has been called."""
        if self._event.is_set():
            raise RenderCancelled(self._reason or "Renderização cancelada")

    def cancel_after(self, seconds: float) -> threading.Timer:
        """Cancel from a daemon timer thread after ``seconds``.

        Returns:
            The started timer; call ``cancel()`` on it once the work finished
        """
        timer = threading.Timer(seconds, self.cancel, kwargs={'reason': f"Tempo limite de {seconds:g}s excedido"})
        timer.daemon = True
        timer.start()
        return timer
