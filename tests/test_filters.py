"""FilterBuilder and LIKE escaping."""

from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from agora.models.post import Post
from agora.services.filters import FilterBuilder, escape_like


def compiled(stmt) -> str:
    return str(stmt.compile(dialect=sqlite.dialect()))


class TestEscapeLike:
    def test_wildcards_are_escaped(self):
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_escape_character_is_escaped_first(self):
        assert escape_like("a\\%") == "a\\\\\\%"

    def test_plain_text_unchanged(self):
        assert escape_like("hello world") == "hello world"


class TestFilterBuilder:
    def test_empty_builder_leaves_statement_alone(self):
        stmt = select(Post.id)
        assert FilterBuilder().apply(stmt) is stmt
        assert FilterBuilder().clause() is None

    def test_blank_search_adds_nothing(self):
        builder = FilterBuilder().search(None, Post.title).search("", Post.title)
        assert len(builder) == 0

    def test_search_ors_columns_and_binds_term(self):
        stmt = FilterBuilder().search("x'; DROP TABLE posts; --", Post.title, Post.body).apply(select(Post.id))
        sql = compiled(stmt)
        assert "DROP TABLE" not in sql
        assert " OR " in sql
        assert "ESCAPE" in sql

    def test_predicates_are_anded(self):
        builder = FilterBuilder().add(Post.votes > 0).add(Post.author_id == 3)
        assert len(builder) == 2
        assert " AND " in compiled(builder.apply(select(Post.id)))
