import pytest

from coursepress.config import ENV_VAR, Settings
from coursepress.errors import (
    FrontMatterError,
    MissingIndexDocument,
    MissingReference,
    AmbiguousReference,
    raise_or_warn,
)
from coursepress.front_matter import body_offset, split_front_matter

from conftest import write


def test_default_settings_are_lenient():
    settings = Settings()
    assert not settings.strict
    assert Settings(mode="production").strict
    with pytest.raises(ValueError):
        Settings(mode="staging")


def test_from_env(monkeypatch, tmp_path):
    missing = tmp_path / "missing.env"
    assert not Settings.from_env(dotenv_path=missing).strict
    assert Settings.from_env(strict=True, dotenv_path=missing).strict
    monkeypatch.setenv("NODE_ENV", "production")
    assert Settings.from_env(dotenv_path=missing).strict
    monkeypatch.setenv(ENV_VAR, "development")
    assert not Settings.from_env(dotenv_path=missing).strict


def test_from_env_reads_dotenv_file(tmp_path):
    write(tmp_path / ".env", f"{ENV_VAR}=production\n")
    assert Settings.from_env().strict


def test_artifact_names(tmp_path):
    settings = Settings()
    assert settings.artifact_name(tmp_path / "1.intro.md") == "1.intro.json"
    assert settings.artifact_name(tmp_path / "cover.png") == "cover.png"


def test_failure_policy(caplog):
    lenient = Settings()
    strict = Settings(mode="production")
    missing = MissingReference("image 'a.png' not found", path="l.md", line=3)
    raise_or_warn(missing, lenient)
    assert "l.md:3: image 'a.png' not found" in caplog.text
    raise_or_warn(MissingIndexDocument("no index"), lenient)
    with pytest.raises(MissingReference):
        raise_or_warn(missing, strict)
    with pytest.raises(AmbiguousReference):
        raise_or_warn(AmbiguousReference("two files"), lenient)


def test_split_front_matter():
    meta, body = split_front_matter("---\ntitle: Intro\nfree: true\n---\nBody\n")
    assert meta == {"title": "Intro", "free": True}
    assert body == "Body\n"
    assert split_front_matter("# No front matter\n") == (
        {},
        "# No front matter\n",
    )


def test_body_offset():
    assert body_offset("---\ntitle: A\n---\nBody") == 3
    assert body_offset("Body") == 0


def test_invalid_front_matter_reports_line():
    text = "---\ntitle: Intro\nslug: [unclosed\n---\nBody\n"
    with pytest.raises(FrontMatterError) as info:
        split_front_matter(text, path="intro.md")
    assert info.value.path == "intro.md"
    assert info.value.line is not None
    assert str(info.value).startswith("intro.md:")
