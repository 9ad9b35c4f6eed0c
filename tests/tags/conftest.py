"""
Pytest fixtures for tag system tests
"""

import pytest
from cryptography.fernet import Fernet

from pagetags.tags import Template, TagParser
from pagetags.tags.engine import (
    TagEvaluator,
    create_default_function_registry,
    default_operation_registry
)
from pagetags.utils.encryption import NumberCipher
from pagetags.utils.static_content import StaticContent


@pytest.fixture
def parser():
    """Fresh parser"""
    return TagParser()


@pytest.fixture
def cipher():
    """Number cipher with a throwaway key"""
    return NumberCipher(Fernet.generate_key().decode('ascii'))


@pytest.fixture
def static_content():
    """Snippet source with a fixed script URL"""
    return StaticContent(turbo_url='/assets/turbo.js')


@pytest.fixture
def evaluator(cipher, static_content):
    """Evaluator wired to the test cipher and snippets"""
    functions = create_default_function_registry(cipher=cipher, static_content=static_content)
    return TagEvaluator(default_operation_registry, functions)


@pytest.fixture
def render(evaluator):
    """Compile and render template text in one call"""
    def _render(source, context=None, **variables):
        return Template.from_source(source).render(context, evaluator=evaluator, **variables)
    return _render


@pytest.fixture
def template_dir(tmp_path):
    """Directory with a couple of template files"""
    (tmp_path / 'hello.erb').write_text('Hello <%= name %>!', encoding='utf-8')
    (tmp_path / 'broken.erb').write_text('<% if x %>never closed', encoding='utf-8')
    return tmp_path
