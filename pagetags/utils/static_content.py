"""
Fixed HTML snippets available to templates.
"""

from pagetags.config import Config


class StaticContent:
    """
    Source of the fixed snippets templates include with global functions.

    Usage in a template: <%- turbo_head() %>
    """

    def __init__(self, turbo_url: str = None):
        self.turbo_url = turbo_url or Config.TURBO_URL

    def turbo_head(self) -> str:
        """Script tag loading Hotwired Turbo, for the page <head>."""
        return f'<script type="module" src="{self.turbo_url}"></script>'
