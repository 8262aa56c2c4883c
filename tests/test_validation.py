from templeline.validation import (
    validate_email,
    validate_name,
    validate_phone,
    validate_service_name,
    words_to_digits,
)


class TestValidateName:
    def test_valid_name(self):
        assert validate_name("Priya") == "Priya"

    def test_strips_whitespace(self):
        assert validate_name("  Priya Raman ") == "Priya Raman"

    def test_rejects_phone_number(self):
        assert validate_name("+15185550123") == ""

    def test_rejects_not_provided(self):
        assert validate_name("Not provided") == ""

    def test_rejects_template_variable(self):
        assert validate_name("{{name}}") == ""

    def test_rejects_none(self):
        assert validate_name(None) == ""


class TestValidateEmail:
    def test_valid_email_lowercased(self):
        assert validate_email("Priya@Example.com") == "priya@example.com"

    def test_spoken_email(self):
        assert validate_email("priya underscore r at gmail dot com") == "priya_r@gmail.com"

    def test_rejects_missing_domain(self):
        assert validate_email("priya@") == ""

    def test_rejects_plain_word(self):
        assert validate_email("priya") == ""


class TestValidatePhone:
    def test_digits_kept(self):
        assert validate_phone("(518) 555-0123") == "5185550123"

    def test_plus_prefix_kept(self):
        assert validate_phone("+1 518 555 0123") == "+15185550123"

    def test_spoken_digits(self):
        assert validate_phone("five one eight five five five oh one two three") == "5185550123"

    def test_rejects_too_short(self):
        assert validate_phone("555") == ""


def test_service_name_collapses_whitespace():
    assert validate_service_name("  Satyanarayana   Puja ") == "Satyanarayana Puja"


def test_words_to_digits_mixed():
    assert words_to_digits("five 1 eight") == "518"
