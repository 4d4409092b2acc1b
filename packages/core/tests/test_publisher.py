"""Tests for the PR creation stage."""

from unittest.mock import MagicMock

import pytest

from mergegate_core.config import Config
from mergegate_core.errors import AuthenticationRequired, DetachedHead, PrTemplateMissing
from mergegate_core.hosts.base import BaseHost
from mergegate_core.publisher import (
    DEFAULT_PR_TITLE,
    create_pull_request_stage,
    extract_pr_url,
    resolve_pr_base,
    resolve_pr_template_path,
    resolve_pr_title,
)


def _host(output="https://github.com/o/r/pull/12\n", default_branch="main"):
    host = MagicMock(spec=BaseHost)
    host.create_pull_request.return_value = output
    host.default_branch.return_value = default_branch
    return host


@pytest.fixture
def repo(mocker, tmp_path):
    mocker.patch("mergegate_core.publisher.repo_root", return_value=tmp_path)
    mocker.patch("mergegate_core.publisher.current_branch", return_value="feature/gate")
    return tmp_path


class TestExtractPrUrl:
    def test_first_url(self):
        output = "Creating pull request\nhttps://github.com/o/r/pull/12\nhttps://other"
        assert extract_pr_url(output) == "https://github.com/o/r/pull/12"

    def test_trailing_punctuation_trimmed(self):
        assert extract_pr_url("(see https://github.com/o/r/pull/3),") == "https://github.com/o/r/pull/3"

    def test_plain_http(self):
        assert extract_pr_url("at http://ghe.local/pr/1;") == "http://ghe.local/pr/1"

    def test_none(self):
        assert extract_pr_url("no link here") is None


class TestResolution:
    def test_template_candidate_order(self, tmp_path):
        (tmp_path / ".github").mkdir()
        (tmp_path / "PULL_REQUEST_TEMPLATE.md").write_text("root")
        assert resolve_pr_template_path(tmp_path) == tmp_path / "PULL_REQUEST_TEMPLATE.md"
        (tmp_path / ".github" / "pull_request_template.md").write_text("github")
        assert resolve_pr_template_path(tmp_path) == tmp_path / ".github" / "pull_request_template.md"

    def test_template_missing(self, tmp_path):
        assert resolve_pr_template_path(tmp_path) is None

    def test_base_from_config(self):
        host = _host()
        assert resolve_pr_base(Config({}, {"verifier.pr.base": " develop "}), host) == "develop"
        host.default_branch.assert_not_called()

    def test_base_from_host(self):
        assert resolve_pr_base(Config({}), _host(default_branch="trunk")) == "trunk"

    def test_base_fallback(self):
        assert resolve_pr_base(Config({}), _host(default_branch=None)) == "main"

    def test_title(self):
        assert resolve_pr_title(Config({})) == DEFAULT_PR_TITLE
        assert resolve_pr_title(Config({}, {"verifier.pr.title": "feat: gate"})) == "feat: gate"


class TestCreatePullRequestStage:
    def test_creates_pr_and_returns_url(self, repo, capsys):
        template = repo / ".github" / "pull_request_template.md"
        template.parent.mkdir()
        template.write_text("## Summary\n")
        host = _host()

        url = create_pull_request_stage(repo, Config({}), host)

        assert url == "https://github.com/o/r/pull/12"
        host.ensure_authenticated.assert_called_once()
        host.create_pull_request.assert_called_once_with(
            base="main", head="feature/gate", title=DEFAULT_PR_TITLE, body_file=template
        )
        assert "PR created: https://github.com/o/r/pull/12" in capsys.readouterr().out

    def test_missing_template_is_fatal(self, repo):
        host = _host()
        with pytest.raises(PrTemplateMissing) as exc_info:
            create_pull_request_stage(repo, Config({}), host)
        assert ".github/pull_request_template.md" in exc_info.value.message
        host.create_pull_request.assert_not_called()

    def test_missing_url_is_not_fatal(self, repo):
        (repo / "pull_request_template.md").write_text("")
        assert create_pull_request_stage(repo, Config({}), _host(output="created\n")) is None

    def test_unauthenticated_host(self, repo):
        (repo / "pull_request_template.md").write_text("")
        host = _host()
        host.ensure_authenticated.side_effect = AuthenticationRequired("gh auth status failed.")
        with pytest.raises(AuthenticationRequired):
            create_pull_request_stage(repo, Config({}), host)
        host.create_pull_request.assert_not_called()

    def test_detached_head(self, mocker, tmp_path):
        mocker.patch("mergegate_core.publisher.repo_root", return_value=tmp_path)
        mocker.patch("mergegate_core.publisher.current_branch", side_effect=DetachedHead())
        with pytest.raises(DetachedHead):
            create_pull_request_stage(tmp_path, Config({}), _host())
