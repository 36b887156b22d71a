# backend/tests/test_csv_rows.py

from guest_invite.services.csv_rows import parse_csv_line


def test_plain_fields_are_trimmed():
    assert parse_csv_line(" a@x.com ,  Ann , Lee ") == ["a@x.com", "Ann", "Lee"]


def test_quoted_comma_does_not_split():
    assert parse_csv_line('a@x.com,"Lee, Jr",Ann') == ["a@x.com", "Lee, Jr", "Ann"]


def test_doubled_quote_is_literal_quote():
    assert parse_csv_line('"say ""hi""",b') == ['say "hi"', "b"]


def test_unbalanced_quote_runs_to_end_of_line():
    assert parse_csv_line('a,"b,c') == ["a", "b,c"]


def test_empty_input_gives_one_empty_field():
    assert parse_csv_line("") == [""]


def test_trailing_comma_gives_trailing_empty_field():
    assert parse_csv_line("a,b,") == ["a", "b", ""]
