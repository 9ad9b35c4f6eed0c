"""
Tests for template evaluation
"""

import threading

import pytest

from pagetags.tags import Template
from pagetags.tags.errors import (
    UndefinedVariable,
    UndefinedOperation,
    TypeMismatch,
    IndexOutOfBounds,
    DivisionByZero,
    NestingTooDeep,
    ParseError
)
from pagetags.tags.engine import TagEvaluator
from pagetags.tags.parser.ast import DocumentNode, ConditionalNode, Branch, BooleanNode, TextNode


class TestOutput:
    """Text and output tags"""

    def test_text_is_unchanged(self, render):
        source = 'No tags here: 100% <b>plain</b>\n\ttext "quoted" & done'
        assert render(source) == source

    def test_escaped_output(self, render):
        assert render('<%= value %>', value='<script>') == '&lt;script&gt;'

    def test_raw_output(self, render):
        assert render('<%- value %>', value='<script>') == '<script>'

    def test_escapes_quotes_and_ampersand(self, render):
        assert render('<%= v %>', v='"a" & \'b\'') == '&#34;a&#34; &amp; &#39;b&#39;'

    def test_display_forms(self, render):
        assert render('<%= 25.0 %>|<%= 54.5 %>|<%= true %>|<%= nil %>') == '25|54.5|true|'

    def test_list_output(self, render):
        assert render('<%= [1, "a"] %>') == '[1, a]'

    def test_record_output_fails(self, render):
        from pagetags.tags.values import FieldAccess

        class Opaque(FieldAccess):
            def template_field(self, name):
                raise KeyError(name)

        with pytest.raises(TypeMismatch):
            render('<%= thing %>', thing=Opaque())

    def test_determinism(self, render):
        template = Template.from_source('<% for i in items %><%= i * 2 %>,<% end %>')
        context = {'items': [1, 2, 3]}
        assert template.render(context) == template.render(context) == '2,4,6,'


class TestControlFlow:
    """if / elsif / else and for"""

    def test_elsif_branch(self, render):
        source = '<% if false %>A<% elsif true %>B<% else %>C<% end %>'
        assert render(source) == 'B'

    def test_first_truthy_branch_only(self, render):
        source = '<% if n > 1 %>big<% elsif n > 0 %>small<% end %>'
        assert render(source, n=5) == 'big'
        assert render(source, n=1) == 'small'
        assert render(source, n=0) == ''

    def test_else_branch(self, render):
        assert render('<% if x %>yes<% else %>no<% end %>', x=0) == 'no'

    def test_unselected_branch_is_not_evaluated(self, render):
        assert render('<% if true %>ok<% else %><%= missing %><% end %>') == 'ok'

    @pytest.mark.parametrize('value, expected', [
        (True, 'T'), (False, 'F'), (None, 'F'),
        (1, 'T'), (0, 'F'), (0.0, 'F'), (-2.5, 'T'),
        ('x', 'T'), ('', 'F'),
        ([0], 'T'), ([], 'F'),
        ({'a': 1}, 'T'), ({}, 'F'),
    ])
    def test_truthiness(self, render, value, expected):
        assert render('<% if v %>T<% else %>F<% end %>', v=value) == expected

    def test_loop_preserves_order(self, render):
        assert render('<% for i in items %><%= i %><% end %>', items=[1, 2, 3]) == '123'

    def test_loop_over_empty_list(self, render):
        assert render('<% for i in items %>x<% end %>', items=[]) == ''

    def test_loop_over_times(self, render):
        assert render('<% for i in 3.times %><%= i %><% end %>') == '012'

    def test_loop_over_mapping_iter(self, render):
        source = '<% for e in h.iter %><%= e.0 %>=<%= e.1 %>;<% end %>'
        assert render(source, h={'a': 1, 'b': 2}) == 'a=1;b=2;'

    def test_loop_over_enumerate(self, render):
        source = '<% for e in names.enumerate %><%= e.0 %>:<%= e.1 %> <% end %>'
        assert render(source, names=['x', 'y']) == '0:x 1:y '

    def test_loop_variable_shadows_context(self, render):
        source = '<% for x in items %><%= x %><% end %>/<%= x %>'
        assert render(source, x='outer', items=['a', 'b']) == 'ab/outer'

    def test_loop_variable_is_discarded(self, render):
        with pytest.raises(UndefinedVariable) as exc_info:
            render('<% for i in items %><% end %><%= i %>', items=[1])
        assert exc_info.value.name == 'i'

    def test_nested_loops_see_outer_binding(self, render):
        source = '<% for a in xs %><% for b in ys %><%= a %><%= b %> <% end %><% end %>'
        assert render(source, xs=[1, 2], ys=['x', 'y']) == '1x 1y 2x 2y '

    def test_loop_over_non_list(self, render):
        with pytest.raises(TypeMismatch):
            render('<% for i in h %><% end %>', h={'a': 1})

    def test_context_is_not_modified(self, render):
        context = {'items': [1, 2]}
        render('<% for item in items %><% end %>', context)
        assert context == {'items': [1, 2]}


class TestExpressions:
    """Operators, members and functions"""

    def test_numeric_operations(self, render):
        assert render('<%= (-25).abs %>') == '25'
        assert render('<%= 25.5.floor %>') == '25'

    def test_unary_minus_after_member(self, render):
        assert render('<%= -25.abs %>') == '-25'

    def test_list_index(self, render):
        assert render('<%= list.1 %>', list=['a', 'b', 'c']) == 'b'

    def test_list_index_out_of_bounds(self, render):
        with pytest.raises(IndexOutOfBounds):
            render('<%= list.5 %>', list=['a', 'b'])

    def test_mapping_member(self, render):
        assert render('<%= user.name.upcase %>', user={'name': 'ann'}) == 'ANN'

    @pytest.mark.parametrize('source, expected', [
        ('<%= 7 / 2 %>', '3'),
        ('<%= -7 / 2 %>', '-3'),
        ('<%= -7 % 3 %>', '-1'),
        ('<%= 7 % -3 %>', '1'),
        ('<%= 7.0 / 2 %>', '3.5'),
        ('<%= 1 + 2 * 3 %>', '7'),
        ('<%= (1 + 2) * 3 %>', '9'),
        ('<%= 10 - 4 - 3 %>', '3'),
        ('<%= 2 * 2.5 %>', '5'),
        ('<%= "ab" + "cd" %>', 'abcd'),
        ('<%= "copy" * 3 + 1 * "copy" %>', 'copycopycopycopy'),
        ('<%= "banana" - "an" %>', 'ba'),
        ('<%= [1] + [2, 3] %>', '[1, 2, 3]'),
        ('<%= [0] * 3 %>', '[0, 0, 0]'),
    ])
    def test_arithmetic(self, render, source, expected):
        assert render(source) == expected

    @pytest.mark.parametrize('source', ['<%= 1 / 0 %>', '<%= 1 % 0 %>', '<%= 1.5 / 0 %>'])
    def test_division_by_zero(self, render, source):
        with pytest.raises(DivisionByZero):
            render(source)

    @pytest.mark.parametrize('source', [
        '<%= "a" + 1 %>',
        '<%= [1] - [1] %>',
        '<%= nil + 1 %>',
        '<%= -"a" %>',
        '<%= "a" < 1 %>',
    ])
    def test_type_mismatch(self, render, source):
        with pytest.raises(TypeMismatch):
            render(source)

    @pytest.mark.parametrize('source, expected', [
        ('<%= 1 == 1.0 %>', 'true'),
        ('<%= true == 1 %>', 'false'),
        ('<%= "a" != "b" %>', 'true'),
        ('<%= [1, 2] == [1, 2] %>', 'true'),
        ('<%= nil == nil %>', 'true'),
        ('<%= [true] == [1] %>', 'false'),
        ('<%= [1, [2]] == [1.0, [2.0]] %>', 'true'),
        ('<%= [1] == [1, 1] %>', 'false'),
        ('<%= 2 > 1.5 %>', 'true'),
        ('<%= "abc" < "abd" %>', 'true'),
        ('<%= 3 <= 2 %>', 'false'),
    ])
    def test_comparison(self, render, source, expected):
        assert render(source) == expected

    def test_mapping_equality_is_element_wise(self, render):
        assert render('<%= a == b %>', a={'x': 1}, b={'x': 1.0}) == 'true'
        assert render('<%= a == b %>', a={'x': True}, b={'x': 1}) == 'false'
        assert render('<%= a == b %>', a={'x': 1}, b={'y': 1}) == 'false'

    @pytest.mark.parametrize('source', [
        '<%= 9223372036854775807 + 1 %>',
        '<%= 4611686018427387904 * 2 %>',
        '<%= 10000000000000000000.0.to_i %>',
    ])
    def test_integer_overflow(self, render, source):
        with pytest.raises(TypeMismatch) as exc_info:
            render(source)
        assert exc_info.value.expected == '64-bit integer'

    def test_negating_integer_min(self, render):
        with pytest.raises(TypeMismatch):
            render('<%= -n %>', n=-(2 ** 63))
        with pytest.raises(TypeMismatch):
            render('<%= n.abs %>', n=-(2 ** 63))
        with pytest.raises(TypeMismatch):
            render('<%= n / -1 %>', n=-(2 ** 63))

    def test_integer_bounds_render(self, render):
        assert render('<%= 9223372036854775807 %>') == '9223372036854775807'
        assert render('<%= -9223372036854775807 - 1 %>') == '-9223372036854775808'

    def test_integer_literal_out_of_range(self):
        with pytest.raises(ParseError):
            Template.from_source('<%= 99999999999999999999999 %>')

    @pytest.mark.parametrize('source, expected', [
        ('<%= true && false %>', 'false'),
        ('<%= false || "x" %>', 'true'),
        ('<%= !nil %>', 'true'),
        ('<%= !0 %>', 'true'),
    ])
    def test_logic(self, render, source, expected):
        assert render(source) == expected

    def test_short_circuit(self, render):
        """Right side is not evaluated when the left decides"""
        assert render('<%= false && missing %>') == 'false'
        assert render('<%= true || missing %>') == 'true'

    def test_undefined_variable(self, render):
        with pytest.raises(UndefinedVariable) as exc_info:
            render('<%= nope %>')
        assert exc_info.value.name == 'nope'

    def test_undefined_operation(self, render):
        with pytest.raises(UndefinedOperation) as exc_info:
            render('<%= 3.upcase %>')
        assert exc_info.value.receiver == 'integer'

    def test_unknown_global_function(self, render):
        with pytest.raises(UndefinedOperation) as exc_info:
            render('<%= launch() %>')
        assert exc_info.value.receiver == 'global'

    def test_context_variable_does_not_shadow_function(self, render):
        assert render('<%- turbo_head() %>', turbo_head='x').startswith('<script')


class TestEvaluatorSafety:
    """Depth guard, error propagation and reentrancy"""

    def test_no_partial_output(self, render):
        with pytest.raises(UndefinedVariable):
            render('before <%= missing %> after')

    def test_deep_nesting_renders(self, render):
        depth = 100
        source = '<% if true %>' * depth + 'deep' + '<% end %>' * depth
        assert render(source) == 'deep'

    def test_depth_guard_on_built_document(self, evaluator):
        node = TextNode(content='x')
        for _ in range(TagEvaluator.MAX_DEPTH + 1):
            node = ConditionalNode(branches=(Branch(BooleanNode(value=True), (node,)),))
        with pytest.raises(NestingTooDeep):
            evaluator.render(DocumentNode(children=(node,)), {})

    def test_long_chains_rejected_at_compile(self):
        """Over-long chains fail when compiled, never when rendered"""
        with pytest.raises(NestingTooDeep):
            Template.from_source('<%= ' + ' + '.join(['1'] * 200) + ' %>')
        with pytest.raises(NestingTooDeep):
            Template.from_source('<%= name' + '.upcase' * 130 + ' %>')

    def test_long_chains_within_limit_render(self, render):
        assert render('<%= ' + ' + '.join(['1'] * 64) + ' %>') == '64'
        assert render('<%= name' + '.upcase' * 40 + ' %>', name='ab') == 'AB'

    def test_concurrent_renders(self, evaluator):
        template = Template.from_source('<% for i in items %><%= i %><% end %>')
        results = {}

        def worker(n):
            results[n] = template.render({'items': list(range(n))}, evaluator=evaluator)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 9)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for n in range(1, 9):
            assert results[n] == ''.join(str(i) for i in range(n))
