import pytest
from pydantic import ValidationError

from webcrawl.config import settings
from webcrawl.errors import ConfigurationError
from webcrawl.models import CrawlConfig, load_config


def test_defaults_come_from_settings():
    config = load_config({"name": "docs", "seed_urls": ["https://example.test/"]})
    assert config.max_depth == settings.default_max_depth
    assert config.max_pages == settings.default_max_pages
    assert config.concurrency == settings.default_concurrency
    assert config.politeness_delay_ms == settings.default_politeness_delay_ms
    assert config.user_agent == settings.user_agent
    assert config.respect_robots and config.follow_redirects and not config.include_binary
    assert config.id


def test_seed_urls_accept_newline_separated_text():
    config = load_config({"name": "docs", "seed_urls": "https://a.test/\n\n  https://b.test/x  \n"})
    assert config.seed_urls == ["https://a.test/", "https://b.test/x"]


def test_load_config_passes_through_models():
    config = CrawlConfig(name="docs", seed_urls=["https://a.test/"])
    assert load_config(config) is config


@pytest.mark.parametrize("overrides,field", [
    ({"name": "   "}, "name"),
    ({"seed_urls": []}, "seed_urls"),
    ({"seed_urls": ["https://a.test/", "ftp://a.test/file"]}, "seed_urls"),
    ({"seed_urls": ["not a url"]}, "seed_urls"),
    ({"max_depth": -1}, "max_depth"),
    ({"max_pages": 0}, "max_pages"),
    ({"concurrency": 0}, "concurrency"),
    ({"concurrency": 11}, "concurrency"),
    ({"politeness_delay_ms": -5}, "politeness_delay_ms"),
    ({"url_pattern": "(unclosed"}, "url_pattern"),
    ({"exclude_pattern": "[z-a]"}, "exclude_pattern"),
])
def test_invalid_values_raise_configuration_error(overrides, field):
    data = {"name": "docs", "seed_urls": ["https://a.test/"], **overrides}
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(data)
    assert len(excinfo.value.errors) == 1
    assert excinfo.value.errors[0].startswith(field)


def test_all_problems_are_reported_together():
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({"name": "", "seed_urls": [], "max_pages": 0})
    assert len(excinfo.value.errors) == 3


def test_empty_patterns_mean_no_filter():
    config = load_config({"name": "docs", "seed_urls": ["https://a.test/"], "url_pattern": "", "exclude_pattern": ""})
    assert config.url_pattern is None
    assert config.exclude_pattern is None


def test_config_is_immutable():
    config = CrawlConfig(name="docs", seed_urls=["https://a.test/"])
    with pytest.raises(ValidationError):
        config.max_pages = 5
