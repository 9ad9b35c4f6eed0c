"""
Tests for global functions
"""

import pytest

from pagetags.tags.errors import DecryptionError, TypeMismatch, UndefinedOperation
from pagetags.tags.engine.functions import TagFunction, FunctionRegistry
from pagetags.tags.values import INTEGER_MIN, INTEGER_MAX


class TestNumberFunctions:
    """encrypt_number / decrypt_number in templates"""

    @pytest.mark.parametrize('number', [0, 1, -1, 42, 10 ** 12, INTEGER_MIN, INTEGER_MAX])
    def test_round_trip(self, render, number):
        assert render('<%= decrypt_number(encrypt_number(n)) %>', n=number) == str(number)

    def test_token_is_url_safe(self, render):
        token = render('<%- encrypt_number(7) %>')
        assert '=' not in token
        assert '/' not in token and '+' not in token

    def test_corrupted_token(self, render, cipher):
        token = cipher.encrypt_number(7)
        middle = len(token) // 2
        corrupted = token[:middle] + ('A' if token[middle] != 'A' else 'B') + token[middle + 1:]

        with pytest.raises(DecryptionError):
            render('<%= decrypt_number(t) %>', t=corrupted)

    def test_garbage_token(self, render):
        with pytest.raises(DecryptionError):
            render('<%= decrypt_number("not-a-token") %>')

    def test_encrypt_requires_integer(self, render):
        with pytest.raises(TypeMismatch):
            render('<%= encrypt_number("7") %>')

    def test_argument_count(self, render):
        with pytest.raises(TypeMismatch):
            render('<%= encrypt_number() %>')
        with pytest.raises(TypeMismatch):
            render('<%= encrypt_number(1, 2) %>')


class TestTurboHead:
    """turbo_head()"""

    def test_script_tag(self, render):
        assert render('<%- turbo_head() %>') == '<script type="module" src="/assets/turbo.js"></script>'

    def test_escaped_when_echoed(self, render):
        assert render('<%= turbo_head() %>').startswith('&lt;script')

    def test_takes_no_arguments(self, render):
        with pytest.raises(TypeMismatch):
            render('<%- turbo_head(1) %>')


class TestFunctionRegistry:
    """Registering custom functions"""

    def test_custom_function(self):
        class Greeting(TagFunction):
            name = 'greeting'
            min_args = 1
            max_args = 1

            def execute(self, args):
                return f"Hello, {args[0]}"

        registry = FunctionRegistry()
        registry.register(Greeting())

        assert registry.execute('greeting', ['Ann']) == 'Hello, Ann'
        assert registry.list_functions() == ['greeting']

    def test_unknown_function(self):
        with pytest.raises(UndefinedOperation) as exc_info:
            FunctionRegistry().execute('missing', [])
        assert exc_info.value.receiver == 'global'
        assert exc_info.value.name == 'missing'
