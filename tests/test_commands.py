# Tests for command-line parsing
# Created: 2026-03-03

import pytest

from domshell.errors import MalformedInput
from domshell.shell.commands import Verb, parse_args, parse_command, tokenize


class TestTokenize:
    def test_plain_words(self):
        assert tokenize("ls -l nav") == ["ls", "-l", "nav"]

    def test_collapses_blanks(self):
        assert tokenize("  cd \t  nav  ") == ["cd", "nav"]

    def test_double_quotes(self):
        assert tokenize('type "hello world"') == ["type", "hello world"]

    def test_single_quotes_keep_double(self):
        assert tokenize("type 'say \"hi\"'") == ["type", 'say "hi"']

    def test_empty_quoted_token(self):
        assert tokenize('type ""') == ["type", ""]

    def test_quote_inside_word(self):
        assert tokenize('grep a"b c"d') == ["grep", "ab cd"]

    def test_escaped_quote_inside_double_quotes(self):
        assert tokenize('type "He said \\"it\'s\\""') == ["type", 'He said "it\'s"']

    def test_escaped_blank_outside_quotes(self):
        assert tokenize("cd main\\ form") == ["cd", "main form"]

    def test_backslash_kept_before_other_chars(self):
        assert tokenize("type C:\\temp") == ["type", "C:\\temp"]
        assert tokenize("type 'a\\b'") == ["type", "a\\b"]
        assert tokenize('type "a\\nb"') == ["type", "a\\nb"]

    def test_escaped_backslash(self):
        assert tokenize('type "a\\\\"') == ["type", "a\\"]

    def test_unbalanced_quote(self):
        with pytest.raises(MalformedInput, match="unbalanced"):
            tokenize('type "oops')


class TestParseCommand:
    def test_blank_is_none(self):
        assert parse_command("   ") is None

    def test_verb_lookup_case_insensitive(self):
        line = parse_command("LS -l")
        assert line.name == "ls"
        assert line.verb is Verb.LS
        assert line.args == ["-l"]

    def test_unknown_verb(self):
        assert parse_command("rm -rf").verb is None

    def test_wants_help(self):
        assert parse_command("ls --help").wants_help
        assert not parse_command("ls -l").wants_help

    def test_goto_is_own_verb(self):
        assert parse_command("goto x").verb is Verb.GOTO


class TestParseArgs:
    def test_flags_and_positionals(self):
        parsed = parse_args(["-l", "nav", "-r"])
        assert parsed.has("-l")
        assert parsed.has("-r")
        assert parsed.positional == ["nav"]

    def test_long_aliases(self):
        parsed = parse_args(["--long", "--recursive"])
        assert parsed.flags == {"-l", "-r"}

    def test_value_options(self):
        parsed = parse_args(["-n", "5", "--offset", "10", "--type", "button"])
        assert parsed.number("-n") == 5
        assert parsed.number("--offset") == 10
        assert parsed.named["--type"] == "button"

    def test_number_default(self):
        assert parse_args([]).number("-n", 20) == 20

    def test_missing_value(self):
        with pytest.raises(MalformedInput, match="-n requires a value"):
            parse_args(["-n"])

    def test_non_numeric(self):
        with pytest.raises(MalformedInput, match="expected a number"):
            parse_args(["-n", "ten"]).number("-n")

    def test_negative(self):
        with pytest.raises(MalformedInput, match="must not be negative"):
            parse_args(["--offset", "-3"]).number("--offset")

    def test_lone_dash_is_positional(self):
        assert parse_args(["-"]).positional == ["-"]
