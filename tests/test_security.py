import re

from financehub.core.security import generate_code, generate_token


def test_generate_code_is_six_digits_in_range():
    for _ in range(500):
        code = generate_code()
        assert re.fullmatch(r"\d{6}", code)
        assert 100000 <= int(code) <= 999999


def test_generate_token_is_64_hex_chars():
    token = generate_token()
    assert re.fullmatch(r"[0-9a-f]{64}", token)


def test_generate_token_is_unique():
    assert len({generate_token() for _ in range(200)}) == 200
