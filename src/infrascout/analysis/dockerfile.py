"""Static extraction of facts from Dockerfiles.

Nothing here builds or runs the image; the file is read as text only.
"""

import json
import re
from pathlib import Path

from infrascout.analysis.manifests import DEFAULT_MAX_BYTES, read_text
from infrascout.analysis.rules import image_repository, image_tag
from infrascout.exceptions import ParseError
from infrascout.models.analysis import DetectedHealthCheck, DockerfileInfo

DEFAULT_PORT = 3000

# Last path segment of the base image -> language runtime
RUNTIME_IMAGES: dict[str, str] = {
    "node": "node",
    "python": "python",
    "golang": "go",
    "ruby": "ruby",
    "php": "php",
    "rust": "rust",
    "elixir": "elixir",
    "openjdk": "java",
    "eclipse-temurin": "java",
    "amazoncorretto": "java",
    "maven": "java",
    "gradle": "java",
    "bun": "bun",
    "deno": "deno",
    "dotnet": "dotnet",
}

_VAR = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)(?::-[^}]*)?\}?")
_DURATION = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_URL_PATH = re.compile(r"""https?://[^/\s"']+(/[^\s"']*)""")


def logical_lines(content: str) -> list[tuple[str, str]]:
    """Join continuation lines and split each into (INSTRUCTION, arguments)."""
    instructions = []
    buffer = ""
    for raw in content.splitlines():
        line = raw.strip()
        if not buffer and (not line or line.startswith("#")):
            continue
        if line.startswith("#"):
            continue
        if line.endswith("\\"):
            buffer += line[:-1].rstrip() + " "
            continue
        buffer += line
        if buffer.strip():
            keyword, _, args = buffer.strip().partition(" ")
            instructions.append((keyword.upper(), args.strip()))
        buffer = ""
    if buffer.strip():
        keyword, _, args = buffer.strip().partition(" ")
        instructions.append((keyword.upper(), args.strip()))
    return instructions


def parse_duration(value: str) -> int:
    """Docker duration (30s, 1m30s, 2h) in whole seconds."""
    matches = _DURATION.findall(value)
    if not matches:
        raise ValueError(f"invalid duration: {value}")
    factors = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}
    return int(sum(float(amount) * factors[unit] for amount, unit in matches))


def runtime_from_image(image: str) -> tuple[str | None, str | None]:
    """Split an image like node:20-alpine into ("node", "20")."""
    repository = image_repository(image)
    runtime = RUNTIME_IMAGES.get(repository.rsplit("/", 1)[-1])
    if runtime is None:
        return None, None
    tag = image_tag(image)
    match = re.match(r"(\d+(?:\.\d+)*)", tag or "")
    return runtime, match.group(1) if match else None


def _expand(value: str, variables: dict[str, str]) -> str:
    return _VAR.sub(lambda m: variables.get(m.group(1), m.group(0)), value)


def _parse_from(args: str) -> tuple[str, str | None]:
    tokens = [t for t in args.split() if not t.startswith("--")]
    if not tokens:
        raise ValueError("FROM without an image")
    alias = tokens[2].lower() if len(tokens) >= 3 and tokens[1].upper() == "AS" else None
    return tokens[0], alias


def _parse_env(args: str) -> dict[str, str]:
    if "=" not in args.split(" ", 1)[0]:
        key, _, value = args.partition(" ")
        return {key: value.strip().strip("\"'")} if key else {}
    pairs = {}
    for match in re.finditer(r"""([A-Za-z_][A-Za-z0-9_]*)=("[^"]*"|'[^']*'|\S*)""", args):
        pairs[match.group(1)] = match.group(2).strip("\"'")
    return pairs


def _parse_healthcheck(args: str) -> DetectedHealthCheck | None:
    if args.upper() == "NONE":
        return None
    cmd = re.search(r"(?i)(?:^|\s)CMD\s+", args)
    if cmd is None:
        raise ValueError("HEALTHCHECK without CMD")
    options, command = args[: cmd.start()], args[cmd.end() :]

    values: dict[str, int] = {}
    for name, raw in re.findall(r"--([a-z-]+)=(\S+)", options):
        match name:
            case "interval":
                values["interval_seconds"] = parse_duration(raw)
            case "timeout":
                values["timeout_seconds"] = parse_duration(raw)
            case "start-period":
                values["start_period_seconds"] = parse_duration(raw)
            case "retries":
                values["retries"] = int(raw)

    command = command.strip()
    if command.startswith("["):
        try:
            command = " ".join(str(part) for part in json.loads(command))
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid HEALTHCHECK exec form: {command}") from e

    url = _URL_PATH.search(command)
    return DetectedHealthCheck(path=url.group(1) if url else None, command=command, **values)


def parse_dockerfile_content(content: str, path: Path | str = "Dockerfile") -> DockerfileInfo:
    """Extract base image, runtime, ports, build args, ENV keys and health check.

    For multi-stage builds the final stage wins; a final stage built FROM an
    earlier stage alias resolves to that stage's image.

    Raises:
        ParseError: If there is no FROM or an instruction is malformed.
    """
    stages: dict[str, str] = {}
    base_image: str | None = None
    variables: dict[str, str] = {}
    ports: list[int] = []
    build_args: list[str] = []
    env_vars: list[str] = []
    health_check: DetectedHealthCheck | None = None

    try:
        for keyword, args in logical_lines(content):
            match keyword:
                case "FROM":
                    image, alias = _parse_from(args)
                    image = _expand(image, variables)
                    base_image = stages.get(image.lower(), image)
                    if alias:
                        stages[alias] = base_image
                    # Exposed ports and health checks belong to the final stage
                    ports, health_check = [], None
                case "ARG":
                    name, _, default = args.partition("=")
                    name = name.strip()
                    if not name:
                        raise ValueError("ARG without a name")
                    build_args.append(name)
                    if default:
                        variables[name] = default.strip().strip("\"'")
                case "ENV":
                    for key, value in _parse_env(args).items():
                        env_vars.append(key)
                        variables[key] = value
                case "EXPOSE":
                    for token in _expand(args, variables).split():
                        number = token.split("/", 1)[0]
                        if number.isdigit() and 0 < int(number) <= 65535:
                            ports.append(int(number))
                case "HEALTHCHECK":
                    health_check = _parse_healthcheck(args)
    except ValueError as e:
        raise ParseError(path, str(e)) from e

    if base_image is None:
        raise ParseError(path, "no FROM instruction")

    runtime, version = runtime_from_image(base_image)
    return DockerfileInfo(
        base_image=base_image,
        runtime=runtime,
        runtime_version=version,
        exposed_ports=list(dict.fromkeys(ports)),
        build_args=list(dict.fromkeys(build_args)),
        env_vars=list(dict.fromkeys(env_vars)),
        health_check=health_check,
    )


def parse_dockerfile(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> DockerfileInfo | None:
    """Parse a Dockerfile on disk, or None when it is absent or oversized."""
    content = read_text(path, max_bytes)
    if content is None:
        return None
    return parse_dockerfile_content(content, path)
