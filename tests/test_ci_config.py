"""Tests for CI configuration detection."""

import pytest

from infrascout.analysis.ci_config import CIConfigDetector, normalize_version
from infrascout.exceptions import ParseError


@pytest.fixture
def ci_detector(settings) -> CIConfigDetector:
    return CIConfigDetector(settings)


GITHUB_WORKFLOW = """
name: ci
on: [push]
jobs:
  test:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/setup-node@v4
        with:
          node-version: 20.x
      - run: npm ci
      - run: |
          npm run lint
          npm run build
      - run: npm test
"""


class TestNormalizeVersion:
    """Test version normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (">=18", "18"),
            ("^18.2.0", "18.2.0"),
            ("20.x", "20"),
            ("3.12", "3.12"),
            (3.11, "3.11"),
            (["3.10", "3.11"], "3.10"),
            ("lts/*", None),
            ([], None),
            (None, None),
        ],
    )
    def test_values(self, value, expected):
        assert normalize_version(value) == expected


class TestGitHubActions:
    """Test workflow parsing."""

    def test_commands_and_node_version(self, ci_detector, make_repo):
        repo = make_repo({".github/workflows/ci.yml": GITHUB_WORKFLOW})

        config = ci_detector.detect(repo)

        assert config.detected_from == "GitHub Actions"
        assert config.install_command == "npm ci"
        assert config.build_command == "npm run build"
        assert config.test_command == "npm test"
        assert config.start_command is None
        assert config.node_version == "20"

    def test_python_and_go_versions(self, ci_detector, make_repo):
        workflow = """
jobs:
  build:
    steps:
      - uses: actions/setup-python@v5
        with:
          python-version: '3.12'
      - uses: actions/setup-go@v5
        with:
          go-version: 1.22.1
      - run: pip install -r requirements.txt
      - run: pytest -q
"""
        config = ci_detector.detect(make_repo({".github/workflows/test.yaml": workflow}))

        assert config.python_version == "3.12"
        assert config.go_version == "1.22.1"
        assert config.install_command == "pip install -r requirements.txt"
        assert config.test_command == "pytest -q"

    def test_each_line_gets_one_kind(self, ci_detector, make_repo):
        """python -m pip and python -m pytest are never taken as start commands."""
        workflow = """
jobs:
  test:
    steps:
      - run: python -m pip install -r requirements.txt
      - run: python -m pytest
"""
        config = ci_detector.detect(make_repo({".github/workflows/ci.yml": workflow}))

        assert config.install_command == "python -m pip install -r requirements.txt"
        assert config.test_command == "python -m pytest"
        assert config.start_command is None

    def test_workflow_without_commands_falls_through(self, ci_detector, make_repo):
        """A workflow with nothing recognisable defers to package.json."""
        repo = make_repo({
            ".github/workflows/release.yml": "jobs:\n  tag:\n    steps:\n      - run: git tag v1\n",
            "package.json": {"scripts": {"start": "node index.js"}},
        })

        config = ci_detector.detect(repo)

        assert config.detected_from == "package.json"
        assert config.start_command == "npm start"

    def test_malformed_workflow(self, ci_detector, make_repo):
        repo = make_repo({".github/workflows/ci.yml": "jobs: [unclosed\n"})
        with pytest.raises(ParseError, match="ci.yml"):
            ci_detector.detect(repo)


class TestGitLabCI:
    """Test .gitlab-ci.yml parsing."""

    def test_image_and_scripts(self, ci_detector, make_repo):
        content = """
image: python:3.11-slim
stages: [test]
test:
  before_script:
    - poetry install
  script:
    - python -m pytest
"""
        config = ci_detector.detect(make_repo({".gitlab-ci.yml": content}))

        assert config.detected_from == "GitLab CI"
        assert config.python_version == "3.11"
        assert config.install_command == "poetry install"
        assert config.test_command == "python -m pytest"

    def test_string_script(self, ci_detector, make_repo):
        content = "image:\n  name: golang:1.21\nbuild:\n  script: go build ./...\n"
        config = ci_detector.detect(make_repo({".gitlab-ci.yml": content}))
        assert config.build_command == "go build ./..."
        assert config.go_version == "1.21"


class TestCircleCI:
    """Test .circleci/config.yml parsing."""

    def test_run_forms(self, ci_detector, make_repo):
        content = """
version: 2.1
jobs:
  build:
    steps:
      - checkout
      - run: yarn install
      - run:
          name: Build
          command: yarn build
"""
        config = ci_detector.detect(make_repo({".circleci/config.yml": content}))

        assert config.detected_from == "CircleCI"
        assert config.install_command == "yarn install"
        assert config.build_command == "yarn build"


class TestPackageJsonFallback:
    """Test commands derived from package.json scripts."""

    def test_npm_defaults(self, ci_detector, make_repo):
        repo = make_repo({
            "package.json": {"scripts": {"build": "tsc", "start": "node dist/index.js"}, "engines": {"node": ">=18"}},
        })

        config = ci_detector.detect(repo)

        assert config.install_command == "npm ci"
        assert config.build_command == "npm run build"
        assert config.test_command is None
        assert config.start_command == "npm start"
        assert config.node_version == "18"

    def test_pnpm_lockfile(self, ci_detector, make_repo):
        repo = make_repo({"package.json": {"scripts": {"build": "vite build"}}, "pnpm-lock.yaml": "lockfileVersion: 6\n"})

        config = ci_detector.detect(repo)

        assert config.install_command == "pnpm install"
        assert config.build_command == "pnpm run build"

    def test_app_path(self, ci_detector, make_repo):
        """A workspace app reads its own package.json."""
        repo = make_repo({
            "package.json": {"scripts": {}},
            "apps/api/package.json": {"scripts": {"start": "node server.js"}},
            "apps/api/yarn.lock": "",
        })

        config = ci_detector.detect(repo, repo / "apps/api")

        assert config.install_command == "yarn install"
        assert config.start_command == "yarn start"

    def test_nothing_found(self, ci_detector, make_repo):
        assert ci_detector.detect(make_repo({"main.go": "package main"})) is None

    def test_malformed_package_json(self, ci_detector, make_repo):
        repo = make_repo({"package.json": "{not json"})
        with pytest.raises(ParseError, match="invalid JSON"):
            ci_detector.detect(repo)
