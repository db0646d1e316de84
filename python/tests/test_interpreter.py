"""
Tests for the restricted script interpreter.

Covers:
- Statement execution (assignments, imports, for/if/while blocks, echo)
- Expression evaluation and Python-style value printing
- Builtins and simulated modules
- Error taxonomy and hardening limits
- Preprocessing and block extraction
"""

import os
from unittest.mock import patch

import pytest

from interpreter import (
    MAX_WHILE_ITERATIONS,
    NO_OUTPUT,
    EvaluationError,
    ExecutionAborted,
    InterpreterLimits,
    PythonInterpreter,
    ResourceLimitError,
    ScriptAttributeError,
    ScriptImportError,
    ScriptNameError,
    ScriptRuntimeError,
    ScriptSyntaxError,
    ScriptTypeError,
    ScriptValueError,
    execute,
)
from interpreter.source import extract_block, preprocess


class TestStatements:
    """Tests for simple statements and output handling."""

    def test_print_expression(self):
        """Test the canonical print(1+2) example."""
        assert execute("print(1+2)") == "3"

    def test_sequential_assignments_carry_forward(self):
        """Test that each line sees the variables of the lines before it."""
        code = "a = 2\nb = a * 3\nc = b - a\nprint(a, b, c)"
        assert execute(code) == "2 6 4"

    def test_no_output_placeholder(self):
        """Test the placeholder for scripts that print nothing."""
        assert execute("x = 1") == NO_OUTPUT
        assert execute("") == NO_OUTPUT
        assert execute("# only a comment\n\n") == NO_OUTPUT

    def test_bare_expression_is_echoed(self):
        """Test that bare expression values are written to the output."""
        assert execute("x = 5\nx") == "5"
        assert execute("[1, 'a', None]") == "[1, 'a', None]"

    def test_empty_string_and_none_not_echoed(self):
        """Test that None and empty string results are not echoed."""
        assert execute('""') == NO_OUTPUT
        assert execute("None") == NO_OUTPUT

    def test_print_separator_keyword(self):
        """Test print() with the sep keyword."""
        assert execute('print("a", "b", sep="-")') == "a-b"

    def test_print_formats_like_python(self):
        """Test printed forms of constants and containers."""
        assert execute("print(True, None)") == "True None"
        assert execute("print(10 / 4)") == "2.5"
        assert execute('print({"a": 1})') == "{'a': 1}"
        assert execute("print((1,))") == "(1,)"

    def test_comment_stripping(self):
        """Test that trailing comments are ignored."""
        assert execute("print(1)  # one") == "1"

    def test_augmented_assignment(self):
        """Test += style assignment."""
        assert execute("x = 1\nx += 2\nx *= 3\nprint(x)") == "9"

    def test_tuple_unpacking(self):
        """Test multiple assignment targets."""
        assert execute("a, b = 1, 2\nprint(a+b)") == "3"

    def test_tuple_unpacking_mismatch(self):
        """Test that unpacking a single value into two names fails."""
        with pytest.raises(ScriptValueError):
            execute("a, b = 1")

    def test_subscript_assignment(self):
        """Test assignment into dict and list items."""
        assert execute("d = {}\nd['a'] = 1\nprint(d)") == "{'a': 1}"
        assert execute("xs = [1, 2]\nxs[0] = 5\nprint(xs)") == "[5, 2]"

    def test_comparison_in_assignment(self):
        """Test that == on the right-hand side is not taken as assignment."""
        assert execute("x = 3 == 3\nprint(x)") == "True"

    def test_list_append_is_not_echoed(self):
        """Test that list.append() mutates without echoing None."""
        assert execute("xs = []\nxs.append(1)\nxs.append(2)\nprint(xs)") == "[1, 2]"

    def test_builtins_can_be_shadowed(self):
        """Test that variables take precedence over builtins."""
        assert execute("len = 5\nprint(len)") == "5"

    def test_pass(self):
        """Test that pass is a no-op."""
        assert execute("pass") == NO_OUTPUT


class TestControlFlow:
    """Tests for for/if/while blocks."""

    def test_for_range(self):
        """Test a for loop over range()."""
        assert execute("for i in range(3):\n    print(i)") == "0\n1\n2"

    def test_for_unpacks_pairs(self):
        """Test for loops with several target names."""
        code = "for k, v in [(1, 2), (3, 4)]:\n    print(k + v)"
        assert execute(code) == "3\n7"

    def test_for_over_tuple(self):
        """Test iteration over a tuple value."""
        assert execute("for x in (1, 2):\n    print(x)") == "1\n2"

    def test_for_rejects_string(self):
        """Test that iterating a string in a for loop is a TypeError."""
        with pytest.raises(ScriptTypeError):
            execute("for c in 'abc':\n    print(c)")

    def test_loop_variable_outlives_loop(self):
        """Test that blocks share the run's single scope."""
        assert execute("for i in range(3):\n    pass\nprint(i)") == "2"

    def test_if_true(self):
        """Test an if block whose condition holds."""
        assert execute("x = 5\nif x > 3:\n    print('big')") == "big"

    def test_if_false_skips_body(self):
        """Test that the body is skipped and execution continues."""
        assert execute("x = 1\nif x > 3:\n    print('big')\nprint('done')") == "done"

    def test_if_truthiness(self):
        """Test Python-style truthiness of containers."""
        code = 'if []:\n    print("no")\nif [0]:\n    print("yes")'
        assert execute(code) == "yes"

    def test_nested_blocks(self):
        """Test a block inside a block."""
        code = "for i in range(4):\n    if i % 2 == 0:\n        print(i)"
        assert execute(code) == "0\n2"

    def test_else_not_supported(self):
        """Test that else blocks are rejected."""
        with pytest.raises(ScriptSyntaxError):
            execute("if True:\n    pass\nelse:\n    pass")

    def test_while_loop(self):
        """Test a terminating while loop."""
        assert execute("x = 0\nwhile x < 3:\n    print(x)\n    x += 1") == "0\n1\n2"

    def test_while_runs_exactly_ceiling_iterations(self):
        """Test that a loop of exactly MAX_WHILE_ITERATIONS iterations completes."""
        code = f"i = 0\nwhile i < {MAX_WHILE_ITERATIONS}:\n    i += 1\nprint(i)"
        assert execute(code) == str(MAX_WHILE_ITERATIONS)

    def test_infinite_while_loop(self):
        """Test that a never-false condition stops after the ceiling."""
        interpreter = PythonInterpreter()
        with pytest.raises(ScriptRuntimeError) as exc_info:
            interpreter.execute("i = 0\nwhile True:\n    i += 1")
        assert "infinite loop" in str(exc_info.value)
        assert interpreter.environment.get("i") == MAX_WHILE_ITERATIONS

    def test_invalid_for_header(self):
        """Test a malformed for header."""
        with pytest.raises(ScriptSyntaxError):
            execute("for 1 in range(3):\n    pass")


class TestExpressions:
    """Tests for expression evaluation."""

    def test_operator_precedence(self):
        """Test arithmetic precedence and right-associative power."""
        assert execute("print(2 + 3 * 4)") == "14"
        assert execute("print(2 ** 3 ** 2)") == "512"
        assert execute("print((2 + 3) * 4)") == "20"
        assert execute("print(-2 ** 2)") == "-4"

    def test_chained_comparison(self):
        """Test a < b < c comparisons."""
        assert execute("print(1 < 2 < 3)") == "True"
        assert execute("print(1 < 3 < 2)") == "False"

    def test_boolean_operators(self):
        """Test and/or/not with short-circuit values."""
        assert execute("print(0 or 'x')") == "x"
        assert execute("print(1 and 2)") == "2"
        assert execute("print(not [])") == "True"

    def test_membership(self):
        """Test in and not in."""
        assert execute("print(2 in [1, 2])") == "True"
        assert execute("print('z' not in 'abc')") == "True"
        assert execute("print('a' in {'a': 1})") == "True"

    def test_indexing_and_slicing(self):
        """Test subscripts and slices on sequences."""
        assert execute("xs = [1, 2, 3, 4]\nprint(xs[-1], xs[1:3], xs[::2])") == "4 [2, 3] [1, 3]"
        assert execute("print('hello'[1:])") == "ello"

    def test_string_concatenation(self):
        """Test string + string."""
        assert execute('print("a" + "b")') == "ab"

    def test_strings_are_verbatim(self):
        """Test that string literals keep backslashes as written."""
        assert execute(r"print(len('a\nb'))") == "4"

    def test_zero_division(self):
        """Test that host failures are wrapped in EvaluationError."""
        with pytest.raises(EvaluationError) as exc_info:
            execute("print(1 / 0)")
        assert isinstance(exc_info.value.cause, ZeroDivisionError)
        assert "ZeroDivisionError" in str(exc_info.value)

    def test_error_carries_whole_binary_expression(self):
        """Test that a failing operation reports both operands."""
        with pytest.raises(EvaluationError) as exc_info:
            execute("x = 0\nprint(10 / x)")
        assert exc_info.value.expression == "10 / x"
        assert str(exc_info.value).endswith("(in expression: 10 / x)")

    def test_error_carries_whole_power_expression(self):
        """Test that a failing power reports the full expression."""
        with pytest.raises(ScriptTypeError) as exc_info:
            execute("y = (-8) ** 0.5")
        assert exc_info.value.expression == "(-8) ** 0.5"

    def test_unsupported_operands(self):
        """Test mixing numbers and strings."""
        with pytest.raises(ScriptTypeError):
            execute("print(1 + 'a')")

    def test_unparseable_expression(self):
        """Test that invalid syntax raises SyntaxError."""
        with pytest.raises(ScriptSyntaxError):
            execute("print(1")

    def test_unterminated_string(self):
        """Test that an unterminated literal raises SyntaxError."""
        with pytest.raises(ScriptSyntaxError):
            execute("print('abc)")


class TestErrors:
    """Tests for the error taxonomy."""

    def test_undefined_function(self):
        """Test calling an unknown name."""
        with pytest.raises(ScriptNameError) as exc_info:
            execute("foo()")
        assert "name 'foo' is not defined" in str(exc_info.value)

    def test_error_carries_innermost_expression(self):
        """Test that the failing sub-expression is attached."""
        with pytest.raises(ScriptNameError) as exc_info:
            execute("x = 1 + foo")
        assert exc_info.value.expression == "foo"
        assert str(exc_info.value).startswith("NameError: ")

    def test_attribute_on_plain_value(self):
        """Test method calls other than list.append."""
        with pytest.raises(ScriptAttributeError):
            execute("x = 1\nx.foo()")

    def test_call_non_callable(self):
        """Test calling a number."""
        with pytest.raises(ScriptTypeError):
            execute("x = 1\nx()")

    def test_partial_output_discarded(self):
        """Test that output before a failure is not returned."""
        interpreter = PythonInterpreter()
        with pytest.raises(ScriptNameError):
            interpreter.execute("print('before')\nfoo()")
        assert interpreter.output.getvalue() == "before"

    def test_interpreter_is_single_use(self):
        """Test that an instance refuses to run twice."""
        interpreter = PythonInterpreter()
        interpreter.execute("x = 1")
        with pytest.raises(RuntimeError):
            interpreter.execute("x = 2")

    def test_fresh_instances_do_not_share_state(self):
        """Test that variables do not leak between execute() calls."""
        execute("leaked = 1")
        with pytest.raises(ScriptNameError):
            execute("print(leaked)")


class TestBuiltins:
    """Tests for builtin functions."""

    def test_len_and_type(self):
        """Test len() and type()."""
        assert execute("print(len([1, 2, 3]), type(1), type('a'), type(1.5))") == "3 int str float"

    def test_conversions(self):
        """Test str/int/float/bool/list conversions."""
        assert execute("print(int('42') + 1)") == "43"
        assert execute("print(float('1.5'))") == "1.5"
        assert execute("print(str(10) + 'x')") == "10x"
        assert execute("print(bool(''), bool('a'))") == "False True"
        assert execute("print(list('ab'))") == "['a', 'b']"

    def test_int_conversion_error(self):
        """Test int() of a non-numeric string."""
        with pytest.raises(ScriptValueError):
            execute("int('abc')")

    def test_isinstance(self):
        """Test isinstance with type builtins and tuples."""
        assert execute("print(isinstance(1, int), isinstance('a', (int, str)))") == "True True"

    def test_aggregates(self):
        """Test max/min/sum/abs."""
        assert execute("print(max(1, 5, 3), min([4, 2]), sum([1, 2, 3]), abs(-2))") == "5 2 6 2"

    def test_round_half_up(self):
        """Test that round() rounds halves up."""
        assert execute("print(round(2.5), round(3.14159, 2))") == "3 3.14"

    def test_sorted_with_keywords(self):
        """Test sorted() with reverse and key."""
        assert execute("print(sorted([3, 1, 2], reverse=True))") == "[3, 2, 1]"
        assert execute("print(sorted(['bb', 'a'], key=len))") == "['a', 'bb']"

    def test_sequence_helpers(self):
        """Test enumerate/zip/reversed/map/filter."""
        assert execute("print(enumerate(['a', 'b']))") == "[(0, 'a'), (1, 'b')]"
        assert execute("print(zip([1, 2], 'ab'))") == "[(1, 'a'), (2, 'b')]"
        assert execute("print(reversed([1, 2, 3]))") == "[3, 2, 1]"
        assert execute("print(map(str, [1, 2]))") == "['1', '2']"
        assert execute("print(filter(None, [0, 1, '', 'a']))") == "[1, 'a']"

    def test_range_step_zero(self):
        """Test range() with a zero step."""
        with pytest.raises(ScriptValueError):
            execute("range(0, 10, 0)")

    def test_input_returns_placeholder(self):
        """Test that input() echoes the prompt and returns a fixed value."""
        assert execute('name = input("Name: ")\nprint(name)') == "Name: \nuser_input"

    def test_open_is_simulated(self):
        """Test that open() returns a simulated file."""
        assert execute('f = open("a.txt")\nprint(f.read())') == "simulated read of file a.txt"

    def test_eval_and_exec(self):
        """Test eval() and exec() against the run's state."""
        assert execute('print(eval("1 + 2"))') == "3"
        assert execute('exec("y = 2")\nprint(y)') == "2"

    def test_hash_is_deterministic(self):
        """Test that hash() and id() agree across runs."""
        first = execute("print(hash('abc'), id('abc'))")
        second = execute("print(hash('abc'), id('abc'))")
        assert first == second
        left, right = first.split()
        assert left == right

    def test_chr_ord_repr(self):
        """Test chr/ord/repr."""
        assert execute("print(chr(ord('a') + 1), repr('x'))") == "b 'x'"

    def test_dir_lists_variables(self):
        """Test dir() without arguments."""
        assert execute("b = 1\na = 2\nprint(dir())") == "['a', 'b']"


class TestModules:
    """Tests for the simulated standard-library modules."""

    def test_math_pi_is_deterministic(self):
        """Test that math.pi prints identically in fresh runs."""
        first = execute("import math\nprint(math.pi)")
        assert first == "3.141592653589793"
        assert execute("import math\nprint(math.pi)") == first

    def test_from_import(self):
        """Test from-imports of module members."""
        assert execute("from math import sqrt, floor\nprint(sqrt(16), floor(2.7))") == "4.0 2"

    def test_from_import_star(self):
        """Test that from-import of * binds every member."""
        assert execute("from math import *\nprint(sqrt(9), pi > 3, factorial(3))") == "3.0 True 6"

    def test_factorial(self):
        """Test math.factorial and its argument checks."""
        assert execute("import math\nprint(math.factorial(5))") == "120"
        with pytest.raises(ScriptValueError):
            execute("import math\nmath.factorial(-1)")

    def test_unknown_module(self):
        """Test importing a module that does not exist."""
        with pytest.raises(ScriptImportError) as exc_info:
            execute("import numpy")
        assert "No module named 'numpy'" in str(exc_info.value)

    def test_unknown_member(self):
        """Test from-importing a missing member."""
        with pytest.raises(ScriptImportError):
            execute("from math import nope")

    def test_missing_module_attribute(self):
        """Test accessing a missing attribute on an imported module."""
        with pytest.raises(ScriptNameError):
            execute("import math\nmath.nope")

    def test_json_round_trip(self):
        """Test json.dumps and json.loads."""
        assert execute('import json\nprint(json.dumps({"a": [1, 2]}))') == '{"a": [1, 2]}'
        assert execute("import json\nd = json.loads('{\"k\": true}')\nprint(d['k'])") == "True"

    def test_json_decode_error(self):
        """Test that invalid JSON raises ValueError."""
        with pytest.raises(ScriptValueError):
            execute("import json\njson.loads('{bad')")

    def test_regex(self):
        """Test re.findall, re.sub and match objects."""
        assert execute('import re\nprint(re.findall("[0-9]+", "a1b22"))') == "['1', '22']"
        assert execute('import re\nprint(re.sub("a", "b", "aa"))') == "bb"
        assert execute('import re\nm = re.search("b+", "abbc")\nprint(m.group(), m.start())') == "bb 1"

    def test_os_is_simulated(self):
        """Test that os answers from fixed data."""
        assert execute("import os\nprint(os.getcwd())") == "/simulated/current/directory"
        assert execute("import os\nprint(os.path.join('a', 'b'))") == "a/b"

    def test_sys_attributes(self):
        """Test sys constants."""
        assert execute("import sys\nprint(sys.platform)") == "mcp-sandbox"

    def test_sys_exit(self):
        """Test that sys.exit() aborts with its code."""
        with pytest.raises(ExecutionAborted) as exc_info:
            execute("import sys\nprint('x')\nsys.exit(3)")
        assert exc_info.value.exit_code == 3

    def test_datetime_today(self):
        """Test datetime.datetime.today() returns an ISO date string."""
        assert execute("import datetime\nprint(len(datetime.datetime.today()))") == "10"

    def test_random_randint_in_range(self):
        """Test random.randint bounds."""
        assert execute("import random\nx = random.randint(1, 3)\nprint(1 <= x <= 3)") == "True"


class TestLimits:
    """Tests for hardening limits."""

    def test_source_length(self):
        """Test the source length cap."""
        with pytest.raises(ResourceLimitError):
            execute("print(12345678901)", InterpreterLimits(max_source_length=10))

    def test_output_size(self):
        """Test the output budget."""
        with pytest.raises(ResourceLimitError):
            execute("for i in range(100):\n    print(i)", InterpreterLimits(max_output_size=10))

    def test_nesting_depth(self):
        """Test the block nesting cap."""
        code = "if True:\n    if True:\n        print(1)"
        assert execute(code) == "1"
        with pytest.raises(ResourceLimitError):
            execute(code, InterpreterLimits(max_nesting_depth=2))

    def test_exec_counts_toward_nesting_depth(self):
        """Test that self-recursive exec() stops at the nesting cap."""
        with pytest.raises(ResourceLimitError):
            execute('s = "exec(s)"\nexec(s)')

    def test_collection_size(self):
        """Test the collection size cap."""
        with pytest.raises(ResourceLimitError):
            execute("range(10)", InterpreterLimits(max_collection_size=5))
        with pytest.raises(ResourceLimitError):
            execute("x = 'ab' * 10", InterpreterLimits(max_collection_size=5))

    def test_large_exponent(self):
        """Test the integer size cap on exponentiation."""
        with pytest.raises(ResourceLimitError):
            execute("x = 2 ** 100000")

    def test_large_power_of_large_base(self):
        """Test that a big base raised to a modest exponent is rejected."""
        with pytest.raises(ResourceLimitError):
            execute("x = 10 ** 10000\ny = x ** 2000")

    def test_repeated_squaring(self):
        """Test that integer multiplication growth is bounded."""
        with pytest.raises(ResourceLimitError) as exc_info:
            execute("x = 10 ** 1000\nwhile True:\n    x = x * x")
        assert "bits" in str(exc_info.value)

    def test_pow_builtin_int_bits(self):
        """Test pow() against the integer size cap."""
        with pytest.raises(ResourceLimitError):
            execute("x = pow(10 ** 10000, 2000)")
        assert execute("print(pow(3, 4, 5), pow(2, 100000, 7))") == "1 2"

    def test_int_bits_limit_is_configurable(self):
        """Test max_int_bits from InterpreterLimits."""
        limits = InterpreterLimits(max_int_bits=64)
        assert execute("print(2 ** 10)", limits) == "1024"
        with pytest.raises(ResourceLimitError):
            execute("x = 2 ** 100", InterpreterLimits(max_int_bits=64))

    def test_limits_are_runtime_errors(self):
        """Test that limit failures are reported as RuntimeError."""
        with pytest.raises(ScriptRuntimeError) as exc_info:
            execute("x = 2 ** 100000")
        assert str(exc_info.value).startswith("RuntimeError: ")

    def test_limits_from_environment(self):
        """Test INTERPRETER_* environment variables."""
        with patch.dict(os.environ, {"INTERPRETER_MAX_OUTPUT_SIZE": "5"}):
            limits = InterpreterLimits()
            assert limits.max_output_size == 5
            assert limits.max_nesting_depth == 50


class TestSource:
    """Tests for preprocessing and block extraction."""

    def test_preprocess_drops_comments_and_blank_lines(self):
        """Test comment truncation and blank line removal."""
        assert preprocess("a = 1  # c\n\n   \nprint(a)") == ["a = 1", "print(a)"]

    def test_preprocess_escaped_hash(self):
        """Test that a backslash-escaped hash survives."""
        assert preprocess("print('\\#')") == ["print('#')"]

    def test_preprocess_keeps_indentation(self):
        """Test that leading whitespace is kept."""
        assert preprocess("if x:\n    y = 1   ") == ["if x:", "    y = 1"]

    def test_extract_block(self):
        """Test that a block ends at the first unindented line."""
        block, consumed = extract_block(["    a", "", "    b", "c"], 0)
        assert block == ["a", "b"]
        assert consumed == 3

    def test_extract_block_tab_indent(self):
        """Test tab indentation."""
        assert extract_block(["\ta", "\t\tb"], 0) == (["a", "\tb"], 2)

    def test_extract_empty_block(self):
        """Test a header with no body."""
        assert extract_block(["x = 1"], 0) == ([], 0)
