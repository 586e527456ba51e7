from __future__ import annotations

from pathlib import Path

import pytest

from metaharvest.config import (
    DEFAULT_MAX_TRIES,
    DEFAULT_RETRY_WAIT,
    HarvestSettings,
    SourceConfigError,
    load_sources,
    source_from_section,
)

DATASOURCES = """
[museum]
url = https://oai.example.org/provider
metadata_prefix = lido
set = objects
id_prefix = oai:museum:
granularity = second
main_events = valmistus:0, creation:0
place_events = käyttö:0
online = yes
split_titles = true
institution = Testimuseo
authority = topic:tm, *:tm-any

[archive]
url = http://archive.example.org/oai
"""


def test_settings_defaults() -> None:
    settings = HarvestSettings.from_env({})

    assert settings.max_tries == DEFAULT_MAX_TRIES == 5
    assert settings.retry_wait == DEFAULT_RETRY_WAIT == 30.0
    assert settings.db_path == Path(".metaharvest.db")
    assert settings.datasources == Path("datasources.ini")


def test_settings_from_env_overrides() -> None:
    settings = HarvestSettings.from_env(
        {
            "METAHARVEST_MAX_TRIES": "2",
            "METAHARVEST_RETRY_WAIT": "0.5",
            "METAHARVEST_HTTP_TIMEOUT": "10",
            "METAHARVEST_TEMP_DIR": "/var/tmp/harvest",
            "METAHARVEST_DB_PATH": "state.db",
        }
    )

    assert settings.max_tries == 2
    assert settings.retry_wait == 0.5
    assert settings.http_timeout == 10.0
    assert settings.temp_dir == Path("/var/tmp/harvest")
    assert settings.db_path == Path("state.db")


@pytest.mark.parametrize(
    "environ",
    [
        {"METAHARVEST_MAX_TRIES": "0"},
        {"METAHARVEST_MAX_TRIES": "many"},
        {"METAHARVEST_RETRY_WAIT": "-1"},
    ],
)
def test_settings_reject_invalid_values(environ: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        HarvestSettings.from_env(environ)


def test_load_sources_reads_every_section(tmp_path: Path) -> None:
    path = tmp_path / "datasources.ini"
    path.write_text(DATASOURCES, encoding="utf-8")

    sources = load_sources(path)

    museum = sources["museum"]
    assert museum.url == "https://oai.example.org/provider"
    assert museum.set_spec == "objects"
    assert museum.id_prefix == "oai:museum:"
    assert museum.granularity == "second"
    assert museum.normalizer.source_id == "museum"
    assert museum.normalizer.main_events == {"valmistus": 0, "creation": 0}
    assert museum.normalizer.place_events == {"käyttö": 0}
    assert museum.normalizer.online is True
    assert museum.normalizer.free_online is None
    assert museum.normalizer.split_titles is True
    assert museum.normalizer.institution == "Testimuseo"
    assert museum.authority_mapper().namespace_for("topic") == "tm"
    assert museum.authority_mapper().namespace_for("geographic") == "tm-any"

    archive = sources["archive"]
    assert archive.metadata_prefix == "lido"
    assert archive.granularity == "day"
    assert archive.pre_transformation is None


@pytest.mark.parametrize(
    ("section", "message"),
    [
        ({}, "Missing url"),
        ({"url": "ftp://example.org"}, "http"),
        ({"url": "http://example.org", "granularity": "hour"}, "granularity"),
        ({"url": "http://example.org", "format": "marc"}, "Unsupported"),
        ({"url": "http://example.org", "pre_transformation": "missing.xsl"}, "not found"),
        ({"url": "http://example.org", "online": "perhaps"}, "boolean"),
        ({"url": "http://example.org", "main_events": "creation"}, "name:value"),
        ({"url": "http://example.org", "main_events": "creation:first"}, "integers"),
    ],
)
def test_invalid_sections_fail_before_harvesting(section: dict[str, str], message: str, tmp_path: Path) -> None:
    with pytest.raises(SourceConfigError) as exc_info:
        source_from_section("broken", section, base_dir=tmp_path)

    assert exc_info.value.source == "broken"
    assert message in str(exc_info.value)


def test_relative_pre_transformation_resolves_against_config_dir(tmp_path: Path) -> None:
    (tmp_path / "fix.xsl").write_text("<x/>", encoding="utf-8")

    settings = source_from_section("s", {"url": "http://example.org", "pre_transformation": "fix.xsl"}, base_dir=tmp_path)

    assert settings.pre_transformation == tmp_path / "fix.xsl"


def test_missing_config_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(SourceConfigError):
        load_sources(tmp_path / "nope.ini")


@pytest.mark.parametrize(
    "text",
    [
        "url = http://example.org/oai\n",
        "[museum]\nurl = http://a.example.org\n[museum]\nurl = http://b.example.org\n",
    ],
)
def test_unreadable_config_file_is_a_configuration_error(text: str, tmp_path: Path) -> None:
    path = tmp_path / "datasources.ini"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(SourceConfigError) as exc_info:
        load_sources(path)

    assert "Invalid datasource configuration" in str(exc_info.value)
