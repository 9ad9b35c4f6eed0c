"""
Compile-once template cache.

In production mode each template file is compiled at most once per process
and shared by every thread that renders it. In development mode the file is
recompiled on every request so edits show up without a restart.

Usage:
    cache = TemplateCache(dev_mode=False)
    html = cache.render('templates/profile.html.erb', {'user': user})
"""

from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import logging
import threading

from pagetags.config import Config
from pagetags.tags.errors import TemplateError
from pagetags.tags.template import Template, compile_path, resolve_path

logger = logging.getLogger(__name__)


class TemplateCache:
    """
    Thread-safe map from template path to compiled template.

    Published templates are read without locking. On a miss, a lock owned by
    that path makes sure only one thread compiles it; the others wait and
    reuse the result. A failed compilation is not stored, so the next
    request tries again, and its lock is dropped so missing paths leave
    nothing behind.

    Args:
        dev_mode: Recompile on every call and store nothing
            (default: Config.TEMPLATE_DEV_MODE)
        compiler: Callable turning a resolved path into a Template
        root: Directory relative paths resolve against (default: cwd)
    """

    def __init__(
        self,
        dev_mode: Optional[bool] = None,
        compiler: Callable[[Path], Template] = compile_path,
        root: Union[str, Path, None] = None,
    ):
        self.dev_mode = Config.TEMPLATE_DEV_MODE if dev_mode is None else dev_mode
        self.root = Path(root) if root else None
        self._compiler = compiler

        self._templates: Dict[Path, Template] = {}

        # Per-path compile locks, created under _guard
        self._path_locks: Dict[Path, threading.Lock] = {}
        self._guard = threading.Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._compilations = 0

        logger.debug(f"Template cache initialized: dev_mode={self.dev_mode}, root={self.root}")

    def resolve(self, path: Union[str, Path]) -> Path:
        """Canonical cache key for a template path."""
        return resolve_path(path, self.root)

    def get(self, path: Union[str, Path]) -> Template:
        """
        Return the compiled template for a path.

        Raises:
            TemplateIOError: If the file cannot be read
            ParseError: If the file is not a valid template
        """
        key = self.resolve(path)

        if self.dev_mode:
            return self._compile(key)

        template = self._templates.get(key)
        if template is not None:
            self._count_hit(key)
            return template

        while True:
            lock = self._lock_for(key)
            with lock:
                # Another thread may have published it while we waited
                template = self._templates.get(key)
                if template is not None:
                    self._count_hit(key)
                    return template

                # A failed compile retired this lock while we waited
                if not self._is_current_lock(key, lock):
                    continue

                self._count_miss()
                try:
                    template = self._compile(key)
                except Exception:
                    self._drop_lock(key, lock)
                    raise
                self._templates[key] = template
                return template

    def render(self, path: Union[str, Path], context: Any = None, evaluator=None, **variables) -> str:
        """Render the template at path. Render errors leave the cached template in place."""
        return self.get(path).render(context, evaluator=evaluator, **variables)

    def from_source(self, text: str) -> Template:
        """Compile template text. Inline templates are never cached."""
        return Template.from_source(text)

    def is_cached(self, path: Union[str, Path]) -> bool:
        """Check if a compiled template is stored for path."""
        return self.resolve(path) in self._templates

    def invalidate(self, path: Union[str, Path]) -> bool:
        """
        Drop the compiled template for a path.

        Returns:
            True if a template was stored
        """
        key = self.resolve(path)
        with self._guard:
            lock = self._path_locks.get(key)
        if lock is None:
            return False

        with lock:
            removed = self._templates.pop(key, None) is not None

        if removed:
            logger.debug(f"Invalidated template {key}")
        return removed

    def clear(self):
        """Drop every compiled template. Compile locks are kept so in-flight compiles stay exclusive."""
        with self._guard:
            count = len(self._templates)
            self._templates = {}

        logger.info(f"Template cache cleared ({count} templates)")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with hits, misses, compilations, size and dev_mode
        """
        with self._guard:
            return {
                'hits': self._hits,
                'misses': self._misses,
                'compilations': self._compilations,
                'size': len(self._templates),
                'dev_mode': self.dev_mode,
            }

    def _compile(self, key: Path) -> Template:
        with self._guard:
            self._compilations += 1

        try:
            return self._compiler(key)
        except TemplateError as e:
            logger.warning(f"Template {key} failed to compile: {e}")
            raise

    def _lock_for(self, key: Path) -> threading.Lock:
        with self._guard:
            lock = self._path_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._path_locks[key] = lock
            return lock

    def _is_current_lock(self, key: Path, lock: threading.Lock) -> bool:
        with self._guard:
            return self._path_locks.get(key) is lock

    def _drop_lock(self, key: Path, lock: threading.Lock):
        # Only paths that compiled keep a lock
        with self._guard:
            if self._path_locks.get(key) is lock:
                del self._path_locks[key]

    def _count_hit(self, key: Path):
        with self._guard:
            self._hits += 1
        logger.debug(f"Template cache hit: {key}")

    def _count_miss(self):
        with self._guard:
            self._misses += 1
