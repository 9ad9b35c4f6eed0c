"""
Tests for the Flask extension
"""

import pytest
from flask import Flask

from pagetags import PageTags, TemplateCache


@pytest.fixture
def template_root(tmp_path):
    (tmp_path / 'profile.html.erb').write_text(
        '<h1><%= user.name %></h1><% for tag in user.tags %><i><%= tag %></i><% end %>',
        encoding='utf-8'
    )
    return tmp_path


@pytest.fixture
def app(template_root):
    app = Flask(__name__)
    app.config.update(TESTING=True, TEMPLATE_ROOT=str(template_root), TEMPLATE_DEV_MODE=False)
    pages = PageTags(app)

    @app.route('/profile/<name>')
    def profile(name):
        return pages.render_response('profile.html.erb', user={'name': name, 'tags': ['a', '<b>']})

    @app.route('/plain')
    def plain():
        return pages.render_response('profile.html.erb', {'user': {'name': 'x', 'tags': []}}, mimetype='text/plain')

    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestPageTags:
    """Extension setup and rendering"""

    def test_cache_registered(self, app):
        cache = app.extensions['pagetags']
        assert isinstance(cache, TemplateCache)
        assert cache.dev_mode is False

    def test_render_response(self, client):
        response = client.get('/profile/Ann')
        assert response.status_code == 200
        assert response.mimetype == 'text/html'
        assert response.get_data(as_text=True) == '<h1>Ann</h1><i>a</i><i>&lt;b&gt;</i>'

    def test_mimetype(self, client):
        response = client.get('/plain')
        assert response.mimetype == 'text/plain'
        assert response.get_data(as_text=True) == '<h1>x</h1>'

    def test_compiled_once_across_requests(self, app, client):
        client.get('/profile/a')
        client.get('/profile/b')
        stats = app.extensions['pagetags'].get_stats()
        assert stats['compilations'] == 1
        assert stats['hits'] == 1

    def test_dev_mode_defaults_to_debug(self):
        app = Flask(__name__)
        app.debug = True
        PageTags(app)
        assert app.extensions['pagetags'].dev_mode is True

    def test_init_app_later(self, template_root):
        pages = PageTags()
        app = Flask(__name__)
        app.config['TEMPLATE_ROOT'] = str(template_root)
        pages.init_app(app)

        with app.app_context():
            html = pages.render('profile.html.erb', user={'name': 'Z', 'tags': []})

        assert html == '<h1>Z</h1>'
