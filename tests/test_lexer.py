from lexer import MAX_TOKEN_LENGTH, MAX_TOKENS, Lexer, is_blank_or_comment, split_words, strip_line, tokenize_line


def test_words_and_quoted_strings():
    assert tokenize_line('print "Hello, World!" and x') == ["print", '"Hello, World!"', "and", "x"]


def test_unterminated_string_runs_to_end_of_line():
    assert tokenize_line('say "oops and more') == ["say", '"oops and more']


def test_text_after_closing_quote_is_a_new_token():
    assert tokenize_line('set a to "x y"z') == ["set", "a", "to", '"x y"', "z"]


def test_ascii_whitespace_separates_words():
    assert tokenize_line("set\tx \v to\f\r 5") == ["set", "x", "to", "5"]


def test_unicode_spaces_belong_to_the_word():
    assert tokenize_line("print a\xa0b") == ["print", "a\xa0b"]
    assert split_words("x is\xa0equal to 1") == ["x", "is\xa0equal", "to", "1"]
    assert strip_line("\xa0print x\n") == "\xa0print x"


def test_token_count_is_bounded():
    source = " ".join(f"w{i}" for i in range(MAX_TOKENS + 8))
    tokens = Lexer(source).tokenize()
    assert len(tokens) == MAX_TOKENS
    assert tokens[-1] == f"w{MAX_TOKENS - 1}"


def test_token_length_is_bounded():
    assert Lexer("x" * 100).tokenize() == ["x" * MAX_TOKEN_LENGTH]


def test_custom_limits():
    assert Lexer("alpha beta gamma", max_tokens=2, max_token_length=3).tokenize() == ["alp", "bet"]


def test_blank_and_comment_lines():
    assert is_blank_or_comment("")
    assert is_blank_or_comment("   \t")
    assert is_blank_or_comment("# a comment")
    assert is_blank_or_comment("   // another")
    assert not is_blank_or_comment("print x # trailing")
    assert not is_blank_or_comment("\xa0")
