"""Tests for settings loading."""

import pytest

from notion_blog.cache import DEFAULT_CACHE_DIR
from notion_blog.config import build_arg_parser, load_settings
from notion_blog.gate import DEFAULT_LIMIT


def parse(*argv):
    return build_arg_parser().parse_args(list(argv))


class TestLoadSettings:
    def test_token_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("secret_file\n")

        settings = load_settings(parse("--token-file", str(token_file), "--page-db", "db1"), environ={})

        assert settings.token == "secret_file"
        assert settings.page_db == "db1"
        assert settings.cache_dir == DEFAULT_CACHE_DIR
        assert settings.rate_limit == DEFAULT_LIMIT
        assert settings.max_retries == 0

    def test_environment_fallbacks(self):
        env = {
            "NOTION_KEY": " secret_env ",
            "NOTION_PAGE_DB_ID": "pages",
            "NOTION_BLOG_CACHE_DIR": "/tmp/blog-cache",
        }

        settings = load_settings(parse(), environ=env)

        assert settings.token == "secret_env"
        assert settings.page_db == "pages"
        assert settings.cache_dir == "/tmp/blog-cache"

    def test_arguments_override_environment(self):
        env = {"NOTION_KEY": "k", "NOTION_PAGE_DB_ID": "env-db"}

        settings = load_settings(
            parse("--page-db", "arg-db", "--rate-limit", "3", "--rate-interval", "0.5",
                  "--max-concurrency", "4", "--retries", "2", "--cache-dir", "c"),
            environ=env,
        )

        assert settings.page_db == "arg-db"
        assert settings.rate_limit == 3
        assert settings.rate_interval == 0.5
        assert settings.max_concurrency == 4
        assert settings.max_retries == 2
        assert settings.cache_dir == "c"

    def test_missing_token(self):
        with pytest.raises(RuntimeError, match="No Notion token"):
            load_settings(parse("--page-db", "db"), environ={})

    def test_missing_token_file(self, tmp_path):
        with pytest.raises(RuntimeError, match="not found"):
            load_settings(parse("--token-file", str(tmp_path / "nope"), "--page-db", "db"), environ={})

    def test_empty_token_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("  \n")
        with pytest.raises(RuntimeError, match="empty"):
            load_settings(parse("--token-file", str(token_file), "--page-db", "db"), environ={})

    def test_missing_page_db(self):
        with pytest.raises(RuntimeError, match="pages database"):
            load_settings(parse(), environ={"NOTION_KEY": "k"})


def test_http_flag():
    assert parse("--http").http is True
    assert parse().http is False
