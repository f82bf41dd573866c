"""Test utility functions and format parsing."""

import pytest

from declient.compiler.types import CollectionFormat, RenameRule
from declient.compiler.utils import (
    extract_placeholders,
    header_name,
    is_token,
    supports_body,
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)
from declient.declarations import parse_timeout
from declient.exceptions import CompilationError, UnknownFormatError


class TestExtractPlaceholders:
    """Test extract_placeholders function."""

    def test_in_order(self):
        """Test that placeholders are returned in template order."""
        assert extract_placeholders('/repos/{owner}/{repo}') == ['owner', 'repo']

    def test_no_placeholders(self):
        """Test a template without placeholders."""
        assert extract_placeholders('/status') == []

    def test_duplicates_reported_once(self):
        """Test that a repeated placeholder is listed once."""
        assert extract_placeholders('/{id}/copy/{id}') == ['id']

    def test_empty_braces_skipped(self):
        """Test that empty braces are not placeholders."""
        assert extract_placeholders('/a/{}/b/{name}') == ['name']


class TestVerbs:
    """Test verb helpers."""

    @pytest.mark.parametrize('method', ['POST', 'PUT', 'PATCH', 'post'])
    def test_body_verbs(self, method):
        """Test verbs that may carry an inferred body."""
        assert supports_body(method) is True

    @pytest.mark.parametrize('method', ['GET', 'DELETE', 'HEAD', 'OPTIONS', 'PURGE'])
    def test_bodyless_verbs(self, method):
        """Test verbs that never get an inferred body, custom ones included."""
        assert supports_body(method) is False

    def test_is_token(self):
        """Test method token validation."""
        assert is_token('PURGE') is True
        assert is_token('M-SEARCH') is True
        assert is_token('BAD VERB') is False
        assert is_token('') is False


class TestCaseConversion:
    """Test case conversion helpers."""

    def test_snake_case(self):
        """Test camelCase to snake_case."""
        assert to_snake_case('searchQuery') == 'search_query'
        assert to_snake_case('already_snake') == 'already_snake'

    def test_camel_case(self):
        """Test snake_case to camelCase."""
        assert to_camel_case('search_query') == 'searchQuery'
        assert to_camel_case('page') == 'page'

    def test_pascal_case(self):
        """Test snake_case to PascalCase."""
        assert to_pascal_case('search_query') == 'SearchQuery'

    def test_kebab_case(self):
        """Test snake_case to kebab-case."""
        assert to_kebab_case('page_size') == 'page-size'

    def test_header_name(self):
        """Test that underscores in interface header names become hyphens."""
        assert header_name('X_Api_Version') == 'X-Api-Version'


class TestCollectionFormat:
    """Test CollectionFormat parsing."""

    @pytest.mark.parametrize(
        'value, expected',
        [
            ('multi', CollectionFormat.MULTI),
            ('csv', CollectionFormat.CSV),
            ('comma', CollectionFormat.CSV),
            ('SSV', CollectionFormat.SSV),
            ('space', CollectionFormat.SSV),
            ('pipes', CollectionFormat.PIPES),
            ('pipe', CollectionFormat.PIPES),
            (None, CollectionFormat.MULTI),
            (CollectionFormat.CSV, CollectionFormat.CSV),
        ],
    )
    def test_parse(self, value, expected):
        """Test accepted spellings."""
        assert CollectionFormat.parse(value) is expected

    def test_separators(self):
        """Test separators of delimited formats."""
        assert CollectionFormat.CSV.separator == ','
        assert CollectionFormat.SSV.separator == ' '
        assert CollectionFormat.PIPES.separator == '|'
        assert CollectionFormat.MULTI.separator is None

    def test_unknown_format(self):
        """Test that an unknown format is a compilation error."""
        with pytest.raises(UnknownFormatError) as exc_info:
            CollectionFormat.parse('tsv')
        assert isinstance(exc_info.value, CompilationError)
        assert "unknown collection format 'tsv'" in str(exc_info.value)


class TestRenameRule:
    """Test RenameRule parsing and application."""

    @pytest.mark.parametrize(
        'rule, expected',
        [
            ('lowercase', 'page_size'),
            ('UPPERCASE', 'PAGE_SIZE'),
            ('camelCase', 'pageSize'),
            ('PascalCase', 'PageSize'),
            ('snake_case', 'page_size'),
            ('SCREAMING_SNAKE_CASE', 'PAGE_SIZE'),
            ('kebab-case', 'page-size'),
            ('SCREAMING-KEBAB-CASE', 'PAGE-SIZE'),
        ],
    )
    def test_apply(self, rule, expected):
        """Test every rule on a snake_case field name."""
        assert RenameRule.parse(rule).apply('page_size') == expected

    def test_aliases(self):
        """Test the short spellings."""
        assert RenameRule.parse('lower') is RenameRule.LOWERCASE
        assert RenameRule.parse('UPPER') is RenameRule.UPPERCASE

    def test_unknown_rule(self):
        """Test that an unknown rule is rejected."""
        with pytest.raises(UnknownFormatError, match='rename rule'):
            RenameRule.parse('Title Case')


class TestParseTimeout:
    """Test parse_timeout function."""

    @pytest.mark.parametrize(
        'value, expected',
        [
            (30, 30.0),
            (1.5, 1.5),
            ('30s', 30.0),
            ('1m', 60.0),
            ('500ms', 0.5),
            ('2h', 7200.0),
            ('10', 10.0),
            (None, None),
        ],
    )
    def test_valid(self, value, expected):
        """Test accepted timeout spellings."""
        assert parse_timeout(value) == expected

    def test_timedelta(self):
        """Test a timedelta timeout."""
        import datetime

        assert parse_timeout(datetime.timedelta(seconds=3)) == 3.0

    @pytest.mark.parametrize('value', ['soon', '0s', -1, '5 days'])
    def test_invalid(self, value):
        """Test rejected timeouts."""
        with pytest.raises(UnknownFormatError):
            parse_timeout(value)
