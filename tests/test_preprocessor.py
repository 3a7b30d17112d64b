# tests/test_preprocessor.py

from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from confpp.config.errors import ConfigFormatError, MacroRecursionError
from confpp.config.macros import MacroTable
from confpp.config.preprocessor import IfFrame, Preprocessor, SwitchFrame, preprocess


def _store(text, external=None):
	store, _ = preprocess(text, external=external)
	return store


def test_comments_blank_lines_and_plain_text_are_ignored():
	store = _store(
		"// comment\n"
		"-- comment = 1\n"
		"<!-- xml style = 2\n"
		"\n"
		"   key = value with = sign   \n"
		"no assignment here\n"
	)
	assert store.items() == [("key", "value with = sign")]


def test_multi_line_blocks():
	store = _store(
		"v1 = value1\n"
		"v2 = {{\n"
		"        line1\n"
		"        line2\n"
		"        }}\n"
		"v3 = value3\n"
		"v4 = {{line1\n"
		"        line2\n"
		"        }}\n"
		"v5 = {{\n"
		"        line1\n"
	)
	assert store.get("v1") == "value1"
	assert store.get("v2") == "line1\r\nline2"
	assert store.get("v3") == "value3"
	assert store.get("v4") == "line1\r\nline2"
	assert store.get("v5") == "line1"


def test_multi_line_block_inside_disabled_branch_is_skipped_whole():
	store = _store(
		"#if false\n"
		"v = {{\n"
		"#endif\n"
		"}}\n"
		"#endif\n"
		"after = 1\n"
	)
	assert store.get("v") is None
	assert store.get("after") == "1"


def test_define_set_undef_and_conditionals():
	store = _store(
		"#define bar\n"
		"#if bar\n"
		" key1=1\n"
		"#else\n"
		" key1=2\n"
		"#endif\n"
		"#undef bar\n"
		"#if bar\n"
		" key2=3\n"
		"#else\n"
		" key2=4\n"
		"#endif"
	)
	assert store.get("key1") == "1"
	assert store.get("key2") == "4"


def test_negated_and_literal_conditions():
	store = _store(
		"#define bar\n"
		"#if bar\n key1=1\n#endif\n"
		"#if !bar\n key2=2\n#endif\n"
		"#if foo\n key3=3\n#endif\n"
		"#if !foo\n key4=4\n#endif\n"
		"#if true\n key5 = 10\n#endif\n"
		"#if FALSE\n key5 = 20\n#endif\n"
	)
	assert store.get("key1") == "1"
	assert store.get("key2") is None
	assert store.get("key3") is None
	assert store.get("key4") == "4"
	assert store.get("key5") == "10"


def test_conditions_consult_external_variables():
	external = {"os.unix": "1"}.get
	store = _store(
		"key0=0\n"
		"#if os.windows\nkey1=10\n#endif\n"
		"#if OS.UNIX\nkey1=100\n#endif\n"
		"#if os.unix\nkey4=400\n#else\nkey4=0\n#endif\n",
		external=lambda name: external(name.lower())
	)
	assert store.get("key1") == "100"
	assert store.get("key4") == "400"


def test_nested_conditionals():
	store = _store(
		"#define bar\n"
		"#if bar\n"
		"    bar=mybar\n"
		"    #if true\n        key1=10\n    #endif\n"
		"    #if false\n        key1=20\n    #endif\n"
		"#endif\n"
		"#if foo\n"
		"    foo=myfoo\n"
		"    #if true\n    key2=100\n    #endif\n"
		"#else\n"
		"    #if true\n    key3=300\n    #else\n    key3=0\n    #endif\n"
		"#endif\n"
		"hello=world\n"
	)
	assert store.get("bar") == "mybar"
	assert store.get("foo") is None
	assert store.get("key1") == "10"
	assert store.get("key2") is None
	assert store.get("key3") == "300"
	assert store.get("hello") == "world"


def test_directives_in_disabled_branches_do_not_define():
	_, macros = preprocess("#if false\n#define x 1\n#set y 2\n#endif\n#define z\n")
	assert "x" not in macros
	assert "y" not in macros
	assert macros.get("z") == ""


def test_set_expands_now_define_expands_later():
	store, macros = preprocess(
		"#define a 1\n"
		"#define b $(a)\n"
		"#set    c $(a)\n"
		"#define a 2\n"
		"k = $(b)\n"
	)
	assert macros.get("b") == "$(a)"
	assert macros.get("c") == "1"
	assert store.get("k") == "$(b)"


SWITCHES = """
#define v1 hello

#switch v1
    #case test1
        key1 = 10
    #case hello
        key1 = 20
    #default
        key1 = 30
#endswitch

#switch v1
    #case TEST1
        key2 = 10
    #case HELLO
        key2 = 20
    #default
        key2 = 30
#endswitch

#switch v1
    #case TEST1
        key3 = 10
    #case TEST2
        key3 = 20
    #default
        key3 = 30
#endswitch

#switch v1
    #case TEST1
        key4 = 10
    #case TEST2
        key4 = 20
#endswitch
"""


def test_switch():
	store = _store(SWITCHES)
	assert store.get("key1") == "20"
	assert store.get("key2") == "20"
	assert store.get("key3") == "30"
	assert store.get("key4") is None


def test_nested_switch():
	store = _store(
		"#define v1 hello\n"
		"#define v2 foo\n"
		"#switch v1\n"
		"    #case test1\n"
		"        key1 = 10\n"
		"        key2 = TEST1\n"
		"    #case hello\n"
		"        #switch v2\n"
		"            #case hello\n"
		"                key1 = 20HELLO\n"
		"            #case foo\n"
		"                key1 = FOO\n"
		"            #default\n"
		"                key1 = 20DEF\n"
		"        #endswitch\n"
		"        key2 = HELLO\n"
		"    #default\n"
		"        key1 = 30\n"
		"        key2 = DEFAULT\n"
		"#endswitch\n"
		"key3 = 30\n"
	)
	assert store.get("key1") == "FOO"
	assert store.get("key2") == "HELLO"
	assert store.get("key3") == "30"


def test_switch_inside_disabled_if_matches_nothing():
	store = _store(
		"#define v hello\n"
		"#if false\n"
		"#switch v\n#case hello\nkey = 1\n#default\nkey = 2\n#endswitch\n"
		"#endif\n"
	)
	assert store.get("key") is None


def test_switch_on_expression_and_first_match_wins():
	store = _store(
		"#define env prod\n"
		"#switch $(env)-eu\n"
		"#case prod-eu\nregion = 1\n"
		"#case PROD-EU\nregion = 2\n"
		"#endswitch\n"
		"#switch undefined_name\n"
		"#case \nempty = yes\n"
		"#endswitch\n"
	)
	assert store.get("region") == "1"
	assert store.get("empty") == "yes"


def test_switch_prefers_loaded_key_over_macro():
	store = _store(
		"#define mode macro\n"
		"mode = key\n"
		"#switch mode\n"
		"#case key\npicked = key\n"
		"#case macro\npicked = macro\n"
		"#endswitch\n"
	)
	assert store.get("picked") == "key"


def test_sections():
	store = _store(
		"#section foo\nkey1 = 10\n#endsection\n"
		"key2 = 20\n"
		"#section bar.\nkey3 = 30\n#endsection\n"
		"key4 = 40\n"
		"#section foo.bar\nkey5 = 50\n#endsection\n"
		"#section joe\n#section blo\nkey6 = 60\n#endsection\nkey7 = 70\n#endsection\n"
		"key8 = 80\n"
	)
	assert store.get("foo.key1") == "10"
	assert store.get("key2") == "20"
	assert store.get("bar.key3") == "30"
	assert store.get("key4") == "40"
	assert store.get("foo.bar.key5") == "50"
	assert store.get("joe.blo.key6") == "60"
	assert store.get("joe.key7") == "70"
	assert store.get("key8") == "80"


def test_auto_index_inside_sections_and_explicit_override():
	store = _store(
		"#section list\n"
		"item[2] = override\n"
		"item[-] = 0\n"
		"item[-] = 1\n"
		"item[-] = 2\n"
		"#endsection\n"
	)
	assert store.array("list.item") == ["0", "1", "override"]


@pytest.mark.parametrize("text, line", [
	("#if true\nkey=1", 1),
	("key=1\n#endif", 2),
	("#if true\n#else\n#else\n#endif", 3),
	("#switch x\n#endif", 2),
	("#section a\n#endswitch", 2),
	("#if true\n#endsection", 2),
	("#section a\n#if true\n#endsection\n#endif", 3),
	("#bogus", 1),
	("#include other.conf", 1),
	("\n#define true 1", 2),
	("#set FALSE 1", 1),
	("#define", 1),
	("#if", 1),
	("#switch", 1),
	("#section", 1),
	("#section a[-]", 1),
	("#switch v\n#default\n#case a\n#endswitch", 3),
	("#switch v\n#default\n#default\n#endswitch", 3),
	("#case a", 1),
	("#switch v\n#case a\n", 1),
])
def test_structural_errors_report_line(text, line):
	with pytest.raises(ConfigFormatError) as info:
		preprocess(text)
	assert info.value.line == line
	assert str(info.value).startswith(f"line {line}: ")


def test_recursive_set_raises():
	with pytest.raises(MacroRecursionError):
		preprocess("#define a $(b)\n#define b $(a)\n#set c $(a)\n")


def test_frames_on_stack_while_running():
	proc = Preprocessor(MacroTable())
	proc._if("true", 1)
	proc._switch("x", 2)
	assert isinstance(proc._stack[0], IfFrame)
	assert isinstance(proc._stack[1], SwitchFrame)
	assert proc.enabled is False
	proc._default("", 3)
	assert proc.enabled is True
