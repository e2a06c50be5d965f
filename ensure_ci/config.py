"""Action inputs: INPUT_* environment variables, overridable by CLI flags."""

from __future__ import annotations

import argparse
import os
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ensure_ci.errors import ConfigurationError
from ensure_ci.services.poll_driver import PollSettings

DEFAULT_API_URL = "https://api.github.com"

_TRUE = {"true", "True", "TRUE"}
_FALSE = {"false", "False", "FALSE"}


class GateSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    github_token: str = Field(min_length=1, repr=False)
    ignored_name_patterns: str = ""
    initial_delay_seconds: int = Field(default=5, ge=0)
    max_retries: int = Field(default=5, ge=0)
    polling_interval_seconds: int = Field(default=60, ge=0)
    full_details_summary: bool = False
    deadline_seconds: Optional[int] = Field(default=None, ge=0)
    api_url: str = DEFAULT_API_URL
    json_output: bool = False
    debug: bool = False

    def poll_settings(self) -> PollSettings:
        return PollSettings(
            initial_delay_seconds=self.initial_delay_seconds,
            polling_interval_seconds=self.polling_interval_seconds,
            max_retries=self.max_retries,
            deadline_seconds=self.deadline_seconds,
        )


def input_env_name(name: str) -> str:
    """Environment variable GitHub Actions uses for an action input."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(env: Mapping[str, str], name: str) -> str:
    return (env.get(input_env_name(name)) or "").strip()


def parse_int(name: str, raw: str | None, default: int | None) -> int | None:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip(), 10)
    except ValueError:
        raise ConfigurationError(f"Input '{name}' must be an integer, got {raw!r}.") from None


def parse_bool(name: str, raw: str | None, default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"Input '{name}' must be 'true' or 'false', got {raw!r}.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ensure-ci-success",
        description="Wait until every check run and commit status of the current commit succeeded.",
    )
    parser.add_argument("--github-token", default=None)
    parser.add_argument("--ignored-name-patterns", default=None, help="Newline separated full-match regexes.")
    parser.add_argument("--initial-delay-seconds", default=None)
    parser.add_argument("--max-retries", default=None)
    parser.add_argument("--polling-interval", default=None)
    parser.add_argument("--full-details-summary", default=None)
    parser.add_argument("--deadline-seconds", default=None)
    parser.add_argument("--api-url", default=None)
    parser.add_argument("--json", action="store_true", help="Print the final decision as JSON.")
    parser.add_argument("--debug", action="store_true")
    return parser


def load_settings(env: Mapping[str, str] | None = None, argv: Sequence[str] | None = None) -> GateSettings:
    env = os.environ if env is None else env
    args = build_parser().parse_args(list(argv) if argv is not None else [])

    def pick(flag: str | None, name: str) -> str:
        return flag if flag is not None else get_input(env, name)

    token = (
        pick(args.github_token, "github-token")
        or (env.get("GITHUB_TOKEN") or "").strip()
        or (env.get("GH_TOKEN") or "").strip()
    )
    if not token:
        raise ConfigurationError("Input required and not supplied: github-token (or set GITHUB_TOKEN / GH_TOKEN).")

    patterns = args.ignored_name_patterns
    if patterns is None:
        # Keep line structure; individual lines are trimmed at compile time.
        patterns = env.get(input_env_name("ignored-name-patterns")) or ""

    try:
        return GateSettings(
            github_token=token,
            ignored_name_patterns=patterns,
            initial_delay_seconds=parse_int(
                "initial-delay-seconds", pick(args.initial_delay_seconds, "initial-delay-seconds"), 5
            ),
            max_retries=parse_int("max-retries", pick(args.max_retries, "max-retries"), 5),
            polling_interval_seconds=parse_int(
                "polling-interval", pick(args.polling_interval, "polling-interval"), 60
            ),
            full_details_summary=parse_bool(
                "full-details-summary", pick(args.full_details_summary, "full-details-summary"), False
            ),
            deadline_seconds=parse_int("deadline-seconds", pick(args.deadline_seconds, "deadline-seconds"), None),
            api_url=pick(args.api_url, "api-url") or (env.get("GITHUB_API_URL") or "").strip() or DEFAULT_API_URL,
            json_output=bool(args.json),
            debug=bool(args.debug) or (env.get("RUNNER_DEBUG") or "").strip() == "1",
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid input: {exc}") from exc
