"""Readiness gate around the process-wide model bundle.

The bundle is loaded exactly once, either synchronously at startup or on a
background thread. Until loading succeeds every ``get()`` fails with
ModelNotReadyError; a failed load is remembered and re-raised.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, Optional, TypeVar

from person_finder.core.errors import ModelLoadError, ModelNotReadyError
from person_finder.core.logging_config import get_logger

logger = get_logger(__name__)

B = TypeVar("B")


class ModelLoader(Generic[B]):
    """Load-once holder for a model bundle.

    Attributes:
        load_fn: Zero-argument callable producing the bundle

    Example:
        >>> loader = ModelLoader(lambda: load_bundle(config))
        >>> loader.start()
        >>> loader.get()  # raises ModelNotReadyError while loading
    """

    def __init__(self, load_fn: Callable[[], B]):
        self.load_fn = load_fn
        self._bundle: Optional[B] = None
        self._error: Optional[ModelLoadError] = None
        self._started = False
        self._done = threading.Event()
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._bundle is not None

    @property
    def failed(self) -> bool:
        return self._error is not None

    def _claim(self) -> bool:
        """Mark loading as started; False if it already was."""
        with self._lock:
            if self._started:
                return False
            self._started = True
            return True

    def _run(self) -> None:
        try:
            bundle = self.load_fn()
        except ModelLoadError as e:
            logger.error(f"Model bundle failed to load: {e}")
            self._error = e
        except Exception as e:
            logger.error(f"Model bundle failed to load: {e}", exc_info=True)
            self._error = ModelLoadError(f"Model bundle failed to load: {e}")
            self._error.__cause__ = e
        else:
            self._bundle = bundle
            logger.info("Model bundle ready")
        finally:
            self._done.set()

    def load(self) -> B:
        """Load synchronously (or wait for a load in progress).

        Returns:
            The loaded bundle.

        Raises:
            ModelLoadError: If loading failed.
        """
        if self._claim():
            self._run()
        else:
            self._done.wait()
        return self.get()

    def start(self) -> Optional[threading.Thread]:
        """Load on a daemon thread; returns None if loading already started."""
        if not self._claim():
            return None
        thread = threading.Thread(target=self._run, name="model-loader", daemon=True)
        thread.start()
        logger.info("Loading model bundle in background...")
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until loading finished (successfully or not)."""
        return self._done.wait(timeout)

    def get(self) -> B:
        """Return the bundle.

        Raises:
            ModelLoadError: If loading failed.
            ModelNotReadyError: If loading has not finished (or not started).
        """
        if self._bundle is not None:
            return self._bundle
        if self._error is not None:
            raise self._error
        raise ModelNotReadyError("Face models are not loaded yet")

    def __repr__(self) -> str:
        state = "ready" if self.ready else "failed" if self.failed else "loading" if self._started else "idle"
        return f"ModelLoader(state={state})"
