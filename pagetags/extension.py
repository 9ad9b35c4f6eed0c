"""
Flask integration.

Usage:
    from flask import Flask
    from pagetags import PageTags

    app = Flask(__name__)
    app.config.from_object(Config)
    pages = PageTags(app)

    @app.route('/users/<int:user_id>')
    def profile(user_id):
        return pages.render_response('templates/profile.html.erb', user=load_user(user_id))
"""

from typing import Any
import logging

from flask import Flask, Response, current_app

from pagetags.tags.cache import TemplateCache

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'pagetags'


class PageTags:
    """
    Wires a TemplateCache into a Flask app.

    Reads from app.config:
        TEMPLATE_DEV_MODE: Recompile on every render (default: app.debug)
        TEMPLATE_ROOT: Directory template paths are relative to (default: cwd)
    """

    def __init__(self, app: Flask = None, evaluator=None):
        self.evaluator = evaluator
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask):
        dev_mode = app.config.get('TEMPLATE_DEV_MODE')
        if dev_mode is None:
            dev_mode = app.debug

        root = app.config.get('TEMPLATE_ROOT') or None

        app.extensions[EXTENSION_KEY] = TemplateCache(dev_mode=bool(dev_mode), root=root)
        logger.info(f"PageTags initialized: dev_mode={bool(dev_mode)}, root={root or '.'}")

    @property
    def cache(self) -> TemplateCache:
        """Template cache of the current app."""
        return current_app.extensions[EXTENSION_KEY]

    def render(self, path: str, context: Any = None, **variables) -> str:
        """Render a template of the current app."""
        return self.cache.render(path, context, evaluator=self.evaluator, **variables)

    def render_response(
        self,
        path: str,
        context: Any = None,
        status: int = 200,
        mimetype: str = 'text/html',
        **variables
    ) -> Response:
        """Render a template into a Flask response."""
        body = self.render(path, context, **variables)
        return Response(body, status=status, mimetype=mimetype)
