"""Commands and runtime versions from CI configuration."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from infrascout.analysis.manifests import is_readable, read_json, read_yaml
from infrascout.models.analysis import CIConfig
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)

INSTALL_PREFIXES = (
    "npm ci",
    "npm install",
    "yarn install",
    "yarn --frozen-lockfile",
    "pnpm install",
    "bun install",
    "pip install",
    "pip3 install",
    "python -m pip install",
    "python3 -m pip install",
    "poetry install",
    "uv sync",
    "composer install",
    "bundle install",
    "go mod download",
)

BUILD_PREFIXES = (
    "npm run build",
    "yarn build",
    "pnpm build",
    "pnpm run build",
    "bun run build",
    "next build",
    "nuxt build",
    "vite build",
    "tsc",
    "go build",
    "cargo build",
    "mix compile",
    "mvn package",
    "gradle build",
    "./gradlew build",
    "python -m build",
)

TEST_PREFIXES = (
    "npm test",
    "npm run test",
    "yarn test",
    "pnpm test",
    "bun test",
    "jest",
    "vitest",
    "pytest",
    "python -m pytest",
    "python3 -m pytest",
    "python -m unittest",
    "go test",
    "cargo test",
    "phpunit",
    "pest",
    "rspec",
    "bundle exec rspec",
    "mix test",
)

START_PREFIXES = (
    "npm start",
    "npm run start",
    "yarn start",
    "pnpm start",
    "node ",
    "python ",
    "uvicorn",
    "gunicorn",
    "./main",
    "go run",
)

# Lockfile -> (install, build, test, start) commands
LOCKFILE_COMMANDS: tuple[tuple[str, tuple[str, str, str, str]], ...] = (
    ("pnpm-lock.yaml", ("pnpm install", "pnpm run build", "pnpm test", "pnpm start")),
    ("yarn.lock", ("yarn install", "yarn build", "yarn test", "yarn start")),
    ("bun.lockb", ("bun install", "bun run build", "bun test", "bun start")),
    ("bun.lock", ("bun install", "bun run build", "bun test", "bun start")),
)
NPM_COMMANDS = ("npm ci", "npm run build", "npm test", "npm start")


def normalize_version(value: Any) -> str | None:
    """Numeric version from a range or alias: ">=18" -> "18", "^18.2.0" -> "18.2.0"."""
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        return None
    match = re.search(r"\d+(?:\.\d+)*", str(value))
    return match.group(0) if match else None


@dataclass
class _Collected:
    """First command of each kind seen while walking a CI file."""

    commands: dict[str, str] = field(default_factory=dict)
    versions: dict[str, Any] = field(default_factory=dict)

    def add_command(self, raw: str) -> None:
        """Record each line under the first kind whose prefixes it matches."""
        for line in raw.splitlines():
            cmd = line.strip()
            if not cmd or cmd.startswith("#"):
                continue
            for kind, prefixes in (
                ("install", INSTALL_PREFIXES),
                ("build", BUILD_PREFIXES),
                ("test", TEST_PREFIXES),
                ("start", START_PREFIXES),
            ):
                if cmd.startswith(prefixes):
                    self.commands.setdefault(kind, cmd)
                    break

    def found(self) -> bool:
        return bool(self.commands) or any(v is not None for v in self.versions.values())

    def build(self, detected_from: str) -> CIConfig:
        return CIConfig(
            install_command=self.commands.get("install"),
            build_command=self.commands.get("build"),
            test_command=self.commands.get("test"),
            start_command=self.commands.get("start"),
            node_version=normalize_version(self.versions.get("node")),
            python_version=normalize_version(self.versions.get("python")),
            go_version=normalize_version(self.versions.get("go")),
            detected_from=detected_from,
        )


class CIConfigDetector:
    """Read install/build/test/start commands from CI files or package.json.

    CI systems are tried in order: GitHub Actions, GitLab CI, CircleCI. The
    app's package.json scripts are the fallback.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.max_bytes = (settings or get_settings()).max_manifest_bytes

    def detect(self, repo_path: Path, app_path: Path | None = None) -> CIConfig | None:
        """Detect CI commands.

        Raises:
            ParseError: If a CI file or package.json is malformed.
        """
        for detect in (self._github_actions, self._gitlab_ci, self._circleci):
            config = detect(repo_path)
            if config is not None:
                logger.debug("CI commands detected from %s", config.detected_from)
                return config
        return self._package_json(app_path or repo_path)

    def _github_actions(self, repo_path: Path) -> CIConfig | None:
        workflows = repo_path / ".github" / "workflows"
        if not workflows.is_dir():
            return None

        collected = _Collected()
        files = sorted([*workflows.glob("*.yml"), *workflows.glob("*.yaml")])
        for workflow in files:
            data = read_yaml(workflow, self.max_bytes)
            jobs = data.get("jobs") if isinstance(data, dict) else None
            if not isinstance(jobs, dict):
                continue
            for job in jobs.values():
                steps = job.get("steps") if isinstance(job, dict) else None
                for step in steps if isinstance(steps, list) else []:
                    if not isinstance(step, dict):
                        continue
                    uses = str(step.get("uses", ""))
                    with_ = step.get("with") if isinstance(step.get("with"), dict) else {}
                    for runtime in ("node", "python", "go"):
                        if f"setup-{runtime}" in uses and f"{runtime}-version" in with_:
                            collected.versions[runtime] = with_[f"{runtime}-version"]
                    if isinstance(step.get("run"), str):
                        collected.add_command(step["run"])

        return collected.build("GitHub Actions") if collected.found() else None

    def _gitlab_ci(self, repo_path: Path) -> CIConfig | None:
        data = read_yaml(repo_path / ".gitlab-ci.yml", self.max_bytes)
        if not isinstance(data, dict):
            return None

        collected = _Collected()
        image = data.get("image")
        if isinstance(image, dict):
            image = image.get("name")
        if isinstance(image, str):
            runtime = image.split(":", 1)[0].rsplit("/", 1)[-1]
            if runtime in ("node", "python") and ":" in image:
                collected.versions[runtime] = image.split(":", 1)[1]
            elif runtime == "golang" and ":" in image:
                collected.versions["go"] = image.split(":", 1)[1]

        for job in data.values():
            if not isinstance(job, dict):
                continue
            for key in ("before_script", "script"):
                script = job.get(key)
                for cmd in script if isinstance(script, list) else [script]:
                    if isinstance(cmd, str):
                        collected.add_command(cmd)

        return collected.build("GitLab CI") if collected.commands else None

    def _circleci(self, repo_path: Path) -> CIConfig | None:
        data = read_yaml(repo_path / ".circleci" / "config.yml", self.max_bytes)
        jobs = data.get("jobs") if isinstance(data, dict) else None
        if not isinstance(jobs, dict):
            return None

        collected = _Collected()
        for job in jobs.values():
            steps = job.get("steps") if isinstance(job, dict) else None
            for step in steps if isinstance(steps, list) else []:
                run = step.get("run") if isinstance(step, dict) else None
                if isinstance(run, dict):
                    run = run.get("command")
                if isinstance(run, str):
                    collected.add_command(run)

        return collected.build("CircleCI") if collected.commands else None

    def _package_json(self, app_dir: Path) -> CIConfig | None:
        manifest = app_dir / "package.json"
        if not is_readable(manifest, self.max_bytes):
            return None
        data = read_json(manifest, self.max_bytes)
        if not isinstance(data, dict):
            return None

        scripts = data.get("scripts") if isinstance(data.get("scripts"), dict) else {}
        engines = data.get("engines") if isinstance(data.get("engines"), dict) else {}
        install, build, test, start = next(
            (commands for lockfile, commands in LOCKFILE_COMMANDS if (app_dir / lockfile).exists()),
            NPM_COMMANDS,
        )
        return CIConfig(
            install_command=install,
            build_command=build if "build" in scripts else None,
            test_command=test if "test" in scripts else None,
            start_command=start if "start" in scripts else None,
            node_version=normalize_version(engines.get("node")),
            detected_from="package.json",
        )
