# /// script
# requires-python = ">=3.11"
# dependencies = [
#   "pandas",
#   "playwright",
#   "rich",
# ]
# ///
"""Horserace Benchmarking Harness CLI Tool.

Drives a headless browser (Playwright) and an HTTP load tester (k6) against
a configured set of named targets, stores every run under its own run id,
and renders Markdown/console summaries plus cross-run comparisons.
"""

from __future__ import annotations

import argparse
import json
import math
import os
import shutil
import subprocess
import sys
import time
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

import pandas as pd
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from rich.console import Console, Group
from rich.markup import escape
from rich.table import Table
from rich.text import Text

__version__ = "1.0.0"

out_console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_RESULTS_DIR = "./results"

CONFIG_FILENAMES = ["horserace.toml", "targets.json"]
CONFIG_SEARCH_PATHS = [
    Path.cwd(),
    Path.home() / ".config" / "horserace",
]

K6_BINARY_ENV_VAR = "HORSERACE_K6_BINARY"
K6_INSTALL_URL = "https://grafana.com/docs/k6/latest/set-up/install-k6/"

RUN_ID_FORMAT = "%Y%m%dT%H%M%SZ"
RUN_INDEX_LIMIT = 50
RUN_LIST_LIMIT = 10

RUNS_DIRNAME = "runs"
LATEST_DIRNAME = "latest"
RUN_INDEX_FILENAME = "runs-index.json"
ALL_RESULTS_FILENAME = "all-results.json"
SUMMARY_FILENAME = "SUMMARY.md"
COMPARISON_FILENAME = "COMPARISON.md"

# Load probe outcomes
LOAD_COMPLETED = "completed"
LOAD_UNAVAILABLE = "unavailable"
LOAD_FAILED = "failed"

BROWSER_COMPLETED = "completed"
BROWSER_FAILED = "failed"

# Numeric fields carried by each browser test kind (all milliseconds)
PROBE_TEST_FIELDS = {
    "page_load": ("duration",),
    "dom_metrics": ("dom_content_loaded", "dom_interactive", "load_complete"),
    "network_timing": ("ttfb", "dns", "tcp", "download"),
}

# Comparable metrics: (metric_key, display_label, test_name, test_field)
COMPARISON_METRICS = [
    ("page_load", "Page Load", "page_load", "duration"),
    ("dom_content_loaded", "DOM Content Loaded", "dom_metrics", "dom_content_loaded"),
    ("dom_interactive", "DOM Interactive", "dom_metrics", "dom_interactive"),
    ("ttfb", "TTFB", "network_timing", "ttfb"),
    ("dns", "DNS", "network_timing", "dns"),
    ("tcp", "TCP", "network_timing", "tcp"),
    ("download", "Download", "network_timing", "download"),
]

NAVIGATION_TIMING_JS = """() => {
    const entries = performance.getEntriesByType('navigation');
    if (entries.length === 0) {
        return null;
    }
    const nav = entries[0];
    return {
        dom_content_loaded: nav.domContentLoadedEventEnd - nav.fetchStart,
        dom_interactive: nav.domInteractive - nav.fetchStart,
        load_complete: nav.loadEventEnd - nav.fetchStart,
        dns: nav.domainLookupEnd - nav.domainLookupStart,
        tcp: nav.connectEnd - nav.connectStart,
        ttfb: nav.responseStart - nav.requestStart,
        download: nav.responseEnd - nav.responseStart,
    };
}"""

# Fixed load profile fed to `k6 run -` on stdin.
K6_SCRIPT = """\
import http from 'k6/http';
import { check, sleep } from 'k6';
import { Trend, Rate, Counter } from 'k6/metrics';

const pageDuration = new Trend('page_duration');
const pageSuccessRate = new Rate('page_success_rate');
const pageLoads = new Counter('page_loads');

export const options = {
  stages: [
    { duration: '30s', target: 10 },
    { duration: '1m', target: 10 },
    { duration: '30s', target: 0 },
  ],
  thresholds: {
    http_req_duration: ['p(95)<500'],
    http_req_failed: ['rate<0.1'],
  },
};

export default function () {
  const url = __ENV.TARGET_URL || 'http://localhost';
  const res = http.get(url);

  pageDuration.add(res.timings.duration);
  pageLoads.add(1);
  pageSuccessRate.add(check(res, {
    'status is 200': (r) => r.status === 200,
    'response time < 1000ms': (r) => r.timings.duration < 1000,
  }));

  sleep(1);
}
"""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class HorseraceError(Exception):
    """Base class for harness errors."""


class ConfigError(HorseraceError):
    """Raised when the targets configuration is malformed."""


class InsufficientRunsError(HorseraceError):
    """Raised when a comparison is requested with fewer than two runs."""


class RunNotFoundError(HorseraceError):
    """Raised when a persisted run cannot be located or parsed."""

    def __init__(self, run_id: str, detail: str | None = None):
        self.run_id = run_id
        message = f"run {run_id} not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Data Model
# ---------------------------------------------------------------------------


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _display_time(value: str) -> str:
    try:
        return _parse_timestamp(value).astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    except (TypeError, ValueError):
        return str(value)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _format_ms(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value)}ms"
    return f"{value:.1f}ms"


@dataclass(frozen=True)
class Target:
    key: str
    name: str
    url: str
    description: str | None = None


@dataclass
class ProbeTest:
    """One named browser measurement (page_load, dom_metrics, network_timing or error)."""

    name: str
    success: bool
    metrics: dict[str, float] = field(default_factory=dict)
    status_code: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        record: dict[str, object] = {"name": self.name, "success": self.success}
        if self.status_code is not None:
            record["status_code"] = self.status_code
        record.update(self.metrics)
        if self.metrics:
            record["unit"] = "ms"
        if self.error is not None:
            record["error"] = self.error
        return record

    @classmethod
    def from_dict(cls, data: dict) -> ProbeTest:
        name = data.get("name", "unknown")
        metrics = {
            key: data[key]
            for key in PROBE_TEST_FIELDS.get(name, ())
            if _is_number(data.get(key))
        }
        return cls(
            name=name,
            success=bool(data.get("success", False)),
            metrics=metrics,
            status_code=data.get("status_code"),
            error=data.get("error"),
        )


@dataclass
class BrowserResult:
    target: str
    url: str
    timestamp: str
    tests: list[ProbeTest] = field(default_factory=list)
    screenshot_path: str | None = None
    error: str | None = None

    @property
    def status(self) -> str:
        return BROWSER_FAILED if self.error else BROWSER_COMPLETED

    @classmethod
    def failed(cls, target: str, url: str, error: str) -> BrowserResult:
        return cls(
            target=target,
            url=url,
            timestamp=_utc_now_iso(),
            tests=[ProbeTest(name="error", success=False, error=error)],
            error=error,
        )

    def metric_values(self) -> dict[str, float]:
        """Flatten the comparable metrics; a failed result contributes none."""
        if self.status == BROWSER_FAILED:
            return {}
        tests_by_name = {test.name: test for test in self.tests}
        values: dict[str, float] = {}
        for metric_key, _, test_name, test_field in COMPARISON_METRICS:
            test = tests_by_name.get(test_name)
            if test is not None and test_field in test.metrics:
                values[metric_key] = test.metrics[test_field]
        return values

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "url": self.url,
            "timestamp": self.timestamp,
            "tests": [test.to_dict() for test in self.tests],
            "screenshot_path": self.screenshot_path,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict | None, target: str, url: str) -> BrowserResult:
        if not isinstance(data, dict):
            return cls.failed(target, url, "no browser results recorded")
        return cls(
            target=data.get("target", target),
            url=data.get("url", url),
            timestamp=data.get("timestamp", ""),
            tests=[ProbeTest.from_dict(test) for test in data.get("tests", []) if isinstance(test, dict)],
            screenshot_path=data.get("screenshot_path"),
            error=data.get("error"),
        )


@dataclass
class LoadResult:
    """Outcome of the load probe, tagged by ``status``.

    LOAD_UNAVAILABLE means the k6 binary was not found, which is a skip and
    not an error. It persists as ``null`` and is restored from ``null``.
    """

    target: str
    url: str
    status: str
    timestamp: str | None = None
    metrics_file: str | None = None
    summary: dict | None = None
    error: str | None = None

    @property
    def had_results(self) -> bool:
        return self.status == LOAD_COMPLETED

    def to_dict(self) -> dict | None:
        if self.status == LOAD_UNAVAILABLE:
            return None
        record: dict[str, object] = {
            "target": self.target,
            "url": self.url,
            "timestamp": self.timestamp,
            "status": self.status,
        }
        if self.status == LOAD_COMPLETED:
            record["metrics_file"] = self.metrics_file
            record["summary"] = self.summary
        else:
            record["error"] = self.error
        return record

    @classmethod
    def from_dict(cls, data: dict | None, target: str, url: str) -> LoadResult:
        if data is None:
            return cls(target=target, url=url, status=LOAD_UNAVAILABLE)
        if data.get("error"):
            return cls(
                target=data.get("target", target),
                url=data.get("url", url),
                status=LOAD_FAILED,
                timestamp=data.get("timestamp"),
                error=str(data["error"]),
            )
        return cls(
            target=data.get("target", target),
            url=data.get("url", url),
            status=LOAD_COMPLETED,
            timestamp=data.get("timestamp"),
            metrics_file=data.get("metrics_file"),
            summary=data.get("summary") or {},
        )


@dataclass
class TargetRunRecord:
    target: str
    url: str
    browser: BrowserResult
    load: LoadResult

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "url": self.url,
            "browser": self.browser.to_dict(),
            "load": self.load.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> TargetRunRecord:
        target = data["target"]
        url = data.get("url", "")
        return cls(
            target=target,
            url=url,
            browser=BrowserResult.from_dict(data.get("browser"), target, url),
            load=LoadResult.from_dict(data.get("load"), target, url),
        )


@dataclass
class Run:
    run_id: str
    timestamp: str
    targets: list[TargetRunRecord] = field(default_factory=list)

    @property
    def target_keys(self) -> list[str]:
        return [record.target for record in self.targets]

    def record_for(self, target_key: str) -> TargetRunRecord | None:
        for record in self.targets:
            if record.target == target_key:
                return record
        return None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "targets": [record.to_dict() for record in self.targets],
        }

    @classmethod
    def from_dict(cls, data: dict, fallback_run_id: str | None = None) -> Run:
        return cls(
            run_id=data.get("run_id") or fallback_run_id or "",
            timestamp=data["timestamp"],
            targets=[TargetRunRecord.from_dict(record) for record in data.get("targets", [])],
        )


@dataclass
class RunIndexEntry:
    run_id: str
    timestamp: str
    targets: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"run_id": self.run_id, "timestamp": self.timestamp, "targets": list(self.targets)}

    @classmethod
    def from_dict(cls, data: dict) -> RunIndexEntry:
        return cls(
            run_id=str(data["run_id"]),
            timestamp=str(data.get("timestamp", "")),
            targets=[str(key) for key in data.get("targets", [])],
        )


# ---------------------------------------------------------------------------
# Config & Profile
# ---------------------------------------------------------------------------


def discover_config_path() -> Path | None:
    """Find the first existing config file in search paths."""
    for search_dir in CONFIG_SEARCH_PATHS:
        for filename in CONFIG_FILENAMES:
            candidate = search_dir / filename
            if candidate.is_file():
                return candidate
    return None


def load_config(config_path: Path | None) -> dict:
    """Parse a TOML (or legacy JSON) config file and return its contents as a dict."""
    if config_path is None:
        return {}
    try:
        if config_path.suffix.lower() == ".json":
            with open(config_path) as fh:
                data = json.load(fh)
        else:
            with open(config_path, "rb") as fh:
                data = tomllib.load(fh)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        err_console.print(f"Error: malformed config file {config_path}: {escape(str(exc))}")
        sys.exit(1)
    except OSError as exc:
        err_console.print(f"Error: cannot read config file {config_path}: {escape(str(exc))}")
        sys.exit(1)

    if not isinstance(data, dict):
        err_console.print(f"Error: config file {config_path} must contain an object at the top level")
        sys.exit(1)
    return data


def apply_profile(args: argparse.Namespace, config: dict, profile_name: str | None) -> argparse.Namespace:
    """Merge config [settings] and optional profile into args.

    Resolution order (highest priority wins):
      1. Explicit CLI flags
      2. Profile values
      3. [settings] defaults from config
      4. Built-in defaults (already in args)
    """
    settings = config.get("settings", {})
    profile = {}
    if profile_name:
        profiles = config.get("profiles", {})
        if profile_name not in profiles:
            available = ", ".join(profiles.keys()) if profiles else "(none)"
            err_console.print(f"Error: profile '{profile_name}' not found in config. Available: {available}")
            sys.exit(1)
        profile = profiles[profile_name]

    config_key_map = {
        "results_dir": "results_dir",
        "k6_binary": "k6_binary",
        "headed": "headed",
        "verbose": "verbose",
    }

    cli_explicit = explicit_args(args)

    for config_key, arg_dest in config_key_map.items():
        if arg_dest in cli_explicit:
            continue
        if config_key in profile:
            setattr(args, arg_dest, profile[config_key])
        elif config_key in settings:
            setattr(args, arg_dest, settings[config_key])

    if not getattr(args, "k6_binary", None):
        env_binary = os.environ.get(K6_BINARY_ENV_VAR)
        if env_binary:
            args.k6_binary = env_binary

    return args


# ---------------------------------------------------------------------------
# Target Registry
# ---------------------------------------------------------------------------


class TargetRegistry:
    """Configured targets, keyed and ordered as they appear in the config."""

    def __init__(self, targets: dict[str, Target]):
        self._targets = dict(targets)

    @classmethod
    def from_config(cls, config: dict) -> TargetRegistry:
        if not isinstance(config, dict):
            raise ConfigError("configuration must be an object")
        raw_targets = config.get("targets")
        if not isinstance(raw_targets, dict):
            raise ConfigError('configuration is missing the "targets" table')

        targets: dict[str, Target] = {}
        for key, entry in raw_targets.items():
            if not isinstance(entry, dict):
                raise ConfigError(f"target '{key}' must be a table with name and url")
            url = entry.get("url")
            if not isinstance(url, str) or not url.strip():
                raise ConfigError(f"target '{key}' has no url")
            description = entry.get("description")
            targets[key] = Target(
                key=key,
                name=str(entry.get("name") or key),
                url=url.strip(),
                description=str(description) if description else None,
            )
        return cls(targets)

    def all(self) -> list[Target]:
        return list(self._targets.values())

    def resolve(self, names: Iterable[str] | None = None) -> list[Target]:
        """Resolve requested keys to targets; unknown keys are reported and skipped."""
        requested = list(names or [])
        if not requested:
            return self.all()

        resolved: list[Target] = []
        seen: set[str] = set()
        for name in requested:
            if name in seen:
                continue
            seen.add(name)
            target = self._targets.get(name)
            if target is None:
                err_console.print(f"Error: unknown target: {escape(name)}")
                continue
            resolved.append(target)
        return resolved


# ---------------------------------------------------------------------------
# CLI Argument Parser
# ---------------------------------------------------------------------------


EXPLICIT_PREFIX = "_explicit_"


def mark_explicit(namespace: argparse.Namespace, dest: str) -> None:
    """Record that ``dest`` was given on the command line.

    One attribute per flag: argparse copies a subcommand's namespace onto the
    parent attribute by attribute, so a shared list would be replaced.
    """
    setattr(namespace, f"{EXPLICIT_PREFIX}{dest}", True)


def explicit_args(namespace: argparse.Namespace) -> set[str]:
    return {
        name[len(EXPLICIT_PREFIX):]
        for name, value in vars(namespace).items()
        if name.startswith(EXPLICIT_PREFIX) and value is True
    }


class TrackingAction(argparse.Action):
    """Argparse action that records which flags were explicitly provided."""

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, values)
        mark_explicit(namespace, self.dest)


class TrackingStoreTrueAction(argparse.Action):
    """Like store_true but tracks that the flag was explicitly set."""

    def __init__(self, option_strings, dest, default=False, required=False, help=None):
        super().__init__(option_strings=option_strings, dest=dest, nargs=0, const=True, default=default, required=required, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, True)
        mark_explicit(namespace, self.dest)


def build_argument_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="horserace",
        description="Horserace Benchmarking Harness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", dest="config", action=TrackingAction, default=None, help="Path to config file (horserace.toml or targets.json)")
    parser.add_argument("-p", "--profile", dest="profile", action=TrackingAction, default=None, help="Named profile from config file")
    parser.add_argument("-v", "--verbose", dest="verbose", action=TrackingStoreTrueAction, default=False, help="Verbose output to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- run ---
    run_parser = subparsers.add_parser("run", help="Benchmark targets and record a new run")
    run_parser.add_argument("targets", nargs="*", default=[], help="Target keys to benchmark (default: all configured targets)")
    run_parser.add_argument("--results-dir", dest="results_dir", action=TrackingAction, default=DEFAULT_RESULTS_DIR, help="Directory holding runs, index and reports")
    run_parser.add_argument("--k6-binary", dest="k6_binary", action=TrackingAction, default=None, help=f"Path to the k6 binary (or set {K6_BINARY_ENV_VAR})")
    run_parser.add_argument("--headed", dest="headed", action=TrackingStoreTrueAction, default=False, help="Show the browser window instead of running headless")

    # --- compare ---
    compare_parser = subparsers.add_parser("compare", help="Compare two or more recorded runs (no ids: list recent runs)")
    compare_parser.add_argument("run_ids", nargs="*", default=[], help="Run ids to compare")
    compare_parser.add_argument("--results-dir", dest="results_dir", action=TrackingAction, default=DEFAULT_RESULTS_DIR, help="Directory holding runs, index and reports")

    # --- targets ---
    subparsers.add_parser("targets", help="List configured targets")

    # --- report ---
    report_parser = subparsers.add_parser("report", help="Print the summary of a recorded run")
    report_parser.add_argument("run_id", nargs="?", default=None, help="Run id (default: latest run)")
    report_parser.add_argument("--results-dir", dest="results_dir", action=TrackingAction, default=DEFAULT_RESULTS_DIR, help="Directory holding runs, index and reports")

    return parser


# ---------------------------------------------------------------------------
# Browser Probe
# ---------------------------------------------------------------------------


def run_browser_probe(target_key: str, url: str, artifacts_dir: Path, headless: bool = True) -> BrowserResult:
    """Load ``url`` in Chromium and collect page-load, DOM and network timings.

    Playwright failures are captured in the returned result (``error`` plus a
    synthetic failed ``error`` test) instead of being raised.
    """
    result = BrowserResult(target=target_key, url=url, timestamp=_utc_now_iso())

    with sync_playwright() as playwright:
        browser = None
        try:
            browser = playwright.chromium.launch(headless=headless)
            page = browser.new_context().new_page()

            load_start = time.monotonic()
            response = page.goto(url, wait_until="networkidle")
            duration = round((time.monotonic() - load_start) * 1000)
            status_code = response.status if response is not None else None
            result.tests.append(ProbeTest(
                name="page_load",
                success=status_code == 200,
                metrics={"duration": duration},
                status_code=status_code,
            ))

            timing = page.evaluate(NAVIGATION_TIMING_JS)
            if timing:
                result.tests.append(ProbeTest(
                    name="dom_metrics",
                    success=True,
                    metrics={key: round(timing[key], 1) for key in PROBE_TEST_FIELDS["dom_metrics"]},
                ))
                result.tests.append(ProbeTest(
                    name="network_timing",
                    success=True,
                    metrics={key: round(timing[key], 1) for key in PROBE_TEST_FIELDS["network_timing"]},
                ))
            else:
                # Navigation Timing Level 2 unavailable
                result.tests.append(ProbeTest(
                    name="dom_metrics",
                    success=True,
                    metrics={key: 0 for key in PROBE_TEST_FIELDS["dom_metrics"]},
                ))

            screenshot_path = Path(artifacts_dir) / f"{target_key}-screenshot.png"
            page.screenshot(path=str(screenshot_path), full_page=False)
            result.screenshot_path = str(screenshot_path)
        except PlaywrightError as exc:
            result.error = str(exc)
            result.tests.append(ProbeTest(name="error", success=False, error=str(exc)))
        finally:
            if browser is not None:
                browser.close()

    return result


# ---------------------------------------------------------------------------
# Load Probe
# ---------------------------------------------------------------------------


def find_k6_binary(configured: str | None = None) -> str | None:
    """Locate the k6 executable, preferring an explicitly configured path."""
    return shutil.which(configured or "k6")


def empty_k6_summary() -> dict:
    return {"total_requests": 0, "kind": "k6", "malformed_lines": 0}


def summarize_k6_metrics(metrics_path: Path, verbose: bool = False) -> dict:
    """Summarize a k6 ``--out json`` file (one JSON object per line).

    Malformed lines are dropped and counted; the remaining ``Point`` entries
    still contribute. An unreadable file yields an empty summary.
    """
    points: list[dict] = []
    malformed_lines = 0
    try:
        # Binary mode so an undecodable line is dropped on its own
        with open(metrics_path, "rb") as fh:
            for line_number, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    malformed_lines += 1
                    if verbose:
                        err_console.print(f"  Warning: skipping malformed k6 line {line_number} in {metrics_path}")
                    continue
                if not isinstance(entry, dict) or entry.get("type") != "Point":
                    continue
                data = entry.get("data") or {}
                points.append({"metric": entry.get("metric"), "value": data.get("value")})
    except OSError as exc:
        err_console.print(f"Warning: cannot read k6 metrics file {metrics_path}: {escape(str(exc))}")
        return empty_k6_summary()

    summary = empty_k6_summary()
    summary["total_requests"] = len(points)
    summary["malformed_lines"] = malformed_lines
    if not points:
        return summary

    frame = pd.DataFrame(points)
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")

    summary["http_reqs"] = int((frame["metric"] == "http_reqs").sum())

    durations = frame.loc[frame["metric"] == "http_req_duration", "value"].dropna()
    if len(durations) > 0:
        summary["http_req_duration_avg_ms"] = round(float(durations.mean()), 1)
        summary["http_req_duration_p95_ms"] = round(float(durations.quantile(0.95)), 1)
        summary["http_req_duration_max_ms"] = round(float(durations.max()), 1)

    failures = frame.loc[frame["metric"] == "http_req_failed", "value"].dropna()
    if len(failures) > 0:
        summary["http_req_failed_rate"] = round(float(failures.mean()), 4)

    return summary


def run_load_probe(
    target_key: str,
    url: str,
    artifacts_dir: Path,
    k6_binary: str | None = None,
    verbose: bool = False,
) -> LoadResult:
    """Run the fixed k6 load profile against ``url``.

    Returns LOAD_UNAVAILABLE when k6 is not installed, LOAD_FAILED when k6
    could not be run or exited non-zero, and LOAD_COMPLETED otherwise.
    """
    binary = find_k6_binary(k6_binary)
    if binary is None:
        err_console.print("Warning: k6 not found. Skipping load test.")
        err_console.print(f"  Install k6: {K6_INSTALL_URL}")
        return LoadResult(target=target_key, url=url, status=LOAD_UNAVAILABLE, timestamp=_utc_now_iso())

    metrics_path = Path(artifacts_dir) / f"{target_key}-k6-results.json"
    command = [binary, "run", "--out", f"json={metrics_path}", "-e", f"TARGET_URL={url}", "-"]
    if verbose:
        err_console.print(f"  $ {escape(' '.join(command))}")

    try:
        subprocess.run(
            command,
            input=K6_SCRIPT,
            text=True,
            check=True,
            env={**os.environ, "TARGET_URL": url},
        )
    except (subprocess.CalledProcessError, OSError) as exc:
        return LoadResult(
            target=target_key,
            url=url,
            status=LOAD_FAILED,
            timestamp=_utc_now_iso(),
            error=str(exc),
        )

    return LoadResult(
        target=target_key,
        url=url,
        status=LOAD_COMPLETED,
        timestamp=_utc_now_iso(),
        metrics_file=str(metrics_path),
        summary=summarize_k6_metrics(metrics_path, verbose),
    )


# ---------------------------------------------------------------------------
# Run Storage & Index
# ---------------------------------------------------------------------------


def run_directory(results_dir: str | Path, run_id: str) -> Path:
    return Path(results_dir) / RUNS_DIRNAME / run_id


def allocate_run_id(results_dir: str | Path, started_at: datetime) -> str:
    """Derive a run id from the start time, suffixing -2, -3... on collision."""
    base_id = started_at.astimezone(timezone.utc).strftime(RUN_ID_FORMAT)
    run_id = base_id
    suffix = 2
    while run_directory(results_dir, run_id).exists():
        run_id = f"{base_id}-{suffix}"
        suffix += 1
    return run_id


def write_json(path: Path, data) -> str:
    """Write ``data`` as indented JSON. Returns the file path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as fh:
        json.dump(data, fh, indent=2, default=str)
    return str(path)


def _write_json_atomic(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w") as fh:
        json.dump(data, fh, indent=2, default=str)
    os.replace(tmp_path, path)


def _index_sort_key(entry: RunIndexEntry) -> tuple[datetime, str]:
    try:
        return _parse_timestamp(entry.timestamp), entry.run_id
    except (TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc), entry.run_id


def load_run_index(results_dir: str | Path) -> list[RunIndexEntry]:
    """Read the run index (newest first). A missing index is empty."""
    index_path = Path(results_dir) / RUN_INDEX_FILENAME
    if not index_path.is_file():
        return []
    try:
        data = json.loads(index_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        err_console.print(f"Warning: ignoring unreadable run index {index_path}: {escape(str(exc))}")
        return []
    if not isinstance(data, list):
        err_console.print(f"Warning: ignoring malformed run index {index_path}")
        return []
    return [RunIndexEntry.from_dict(item) for item in data if isinstance(item, dict) and "run_id" in item]


def append_run_to_index(
    results_dir: str | Path,
    entry: RunIndexEntry,
    limit: int = RUN_INDEX_LIMIT,
) -> list[RunIndexEntry]:
    """Read, append, trim to ``limit`` (oldest evicted) and atomically rewrite the index."""
    entries = [existing for existing in load_run_index(results_dir) if existing.run_id != entry.run_id]
    entries.append(entry)
    entries.sort(key=_index_sort_key, reverse=True)
    entries = entries[:limit]
    _write_json_atomic(Path(results_dir) / RUN_INDEX_FILENAME, [item.to_dict() for item in entries])
    return entries


def _read_run_file(run_file: Path, run_id: str) -> Run:
    if not run_file.is_file():
        raise RunNotFoundError(run_id)
    try:
        data = json.loads(run_file.read_text())
        run = Run.from_dict(data, fallback_run_id=run_id)
        _parse_timestamp(run.timestamp)
    except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError, AttributeError) as exc:
        raise RunNotFoundError(run_id, f"cannot parse {run_file}: {exc}") from exc
    return run


def load_run(results_dir: str | Path, run_id: str) -> Run:
    """Load a persisted run by id. Raises RunNotFoundError."""
    return _read_run_file(run_directory(results_dir, run_id) / ALL_RESULTS_FILENAME, run_id)


def load_latest_run(results_dir: str | Path) -> Run:
    return _read_run_file(Path(results_dir) / LATEST_DIRNAME / ALL_RESULTS_FILENAME, LATEST_DIRNAME)


def persist_run(run: Run, results_dir: str | Path) -> list[str]:
    """Write the run record and summary, refresh ``latest``, then index the run.

    The index is touched last so an indexed run always has its record on disk.
    """
    run_dir = run_directory(results_dir, run.run_id)
    latest_dir = Path(results_dir) / LATEST_DIRNAME
    record = run.to_dict()
    summary = format_run_markdown(run)

    written_files = [write_json(run_dir / ALL_RESULTS_FILENAME, record)]
    summary_path = run_dir / SUMMARY_FILENAME
    summary_path.write_text(summary)
    written_files.append(str(summary_path))

    written_files.append(write_json(latest_dir / ALL_RESULTS_FILENAME, record))
    latest_summary_path = latest_dir / SUMMARY_FILENAME
    latest_summary_path.write_text(summary)
    written_files.append(str(latest_summary_path))

    append_run_to_index(results_dir, RunIndexEntry(run_id=run.run_id, timestamp=run.timestamp, targets=run.target_keys))
    written_files.append(str(Path(results_dir) / RUN_INDEX_FILENAME))
    return written_files


# ---------------------------------------------------------------------------
# Run Recorder
# ---------------------------------------------------------------------------

BrowserProbe = Callable[[Target, Path], BrowserResult]
LoadProbe = Callable[[Target, Path], LoadResult]


def _run_browser_phase(browser_probe: BrowserProbe, target: Target, run_dir: Path) -> BrowserResult:
    err_console.print(f"\nRunning browser tests for {target.key}...")
    try:
        result = browser_probe(target, run_dir)
    except Exception as exc:
        # A crashing probe fails only this target's browser phase
        result = BrowserResult.failed(target.key, target.url, str(exc) or type(exc).__name__)

    if result.error:
        err_console.print(f"  Error: browser tests failed for {target.key}: {escape(result.error)}")
    else:
        err_console.print(f"  Browser tests completed for {target.key}")
    return result


def _run_load_phase(load_probe: LoadProbe, target: Target, run_dir: Path) -> LoadResult:
    err_console.print(f"\nRunning k6 load test for {target.key}...")
    try:
        result = load_probe(target, run_dir)
    except Exception as exc:
        result = LoadResult(
            target=target.key,
            url=target.url,
            status=LOAD_FAILED,
            timestamp=_utc_now_iso(),
            error=str(exc) or type(exc).__name__,
        )

    if result.status == LOAD_COMPLETED:
        err_console.print(f"  k6 test completed for {target.key}")
    elif result.status == LOAD_FAILED:
        err_console.print(f"  Error: k6 test failed for {target.key}: {escape(result.error or '')}")
    else:
        err_console.print(f"  k6 test skipped for {target.key} (not installed)")
    return result


def record_run(
    targets: list[Target],
    results_dir: str | Path,
    browser_probe: BrowserProbe,
    load_probe: LoadProbe,
    started_at: datetime | None = None,
) -> Run:
    """Benchmark ``targets`` one at a time and persist the resulting run."""
    started_at = started_at or datetime.now(timezone.utc)
    run_id = allocate_run_id(results_dir, started_at)
    run_dir = run_directory(results_dir, run_id)
    run_dir.mkdir(parents=True, exist_ok=True)
    run = Run(run_id=run_id, timestamp=started_at.isoformat())

    err_console.print(f"Run {run_id}: benchmarking {len(targets)} target(s)")

    for target in targets:
        err_console.print(f"\nBenchmarking {escape(target.name)} ({escape(target.url)})")
        err_console.print("-" * 50)

        browser_result = _run_browser_phase(browser_probe, target, run_dir)
        load_result = _run_load_phase(load_probe, target, run_dir)

        record = TargetRunRecord(target=target.key, url=target.url, browser=browser_result, load=load_result)
        run.targets.append(record)

        target_file = write_json(run_dir / f"{target.key}-combined-results.json", record.to_dict())
        err_console.print(f"  Results saved to {target_file}")

    written_files = persist_run(run, results_dir)
    err_console.print("\nResults written to:")
    for filepath in written_files:
        err_console.print(f"  {filepath}")
    return run


# ---------------------------------------------------------------------------
# Summary Rendering
# ---------------------------------------------------------------------------


def _describe_test(test: ProbeTest) -> str:
    if test.error:
        return test.error
    if test.name == "page_load" and "duration" in test.metrics:
        status = f" (HTTP {test.status_code})" if test.status_code is not None else ""
        return f"{_format_ms(test.metrics['duration'])}{status}"
    if test.name == "dom_metrics":
        parts = []
        if "dom_content_loaded" in test.metrics:
            parts.append(f"DCL: {_format_ms(test.metrics['dom_content_loaded'])}")
        if "dom_interactive" in test.metrics:
            parts.append(f"DI: {_format_ms(test.metrics['dom_interactive'])}")
        return ", ".join(parts)
    if test.name == "network_timing":
        labels = [("ttfb", "TTFB"), ("dns", "DNS"), ("tcp", "TCP"), ("download", "Download")]
        return ", ".join(f"{label}: {_format_ms(test.metrics[key])}" for key, label in labels if key in test.metrics)
    return ""


def _load_summary_rows(load: LoadResult) -> list[tuple[str, str]]:
    summary = load.summary or {}
    rows = [
        ("Status", "✅ Completed"),
        ("Data Points", str(summary.get("total_requests", 0))),
    ]
    if "http_req_duration_avg_ms" in summary:
        rows.append(("HTTP Duration (avg)", _format_ms(summary["http_req_duration_avg_ms"])))
    if "http_req_duration_p95_ms" in summary:
        rows.append(("HTTP Duration (p95)", _format_ms(summary["http_req_duration_p95_ms"])))
    if "http_req_failed_rate" in summary:
        rows.append(("HTTP Failure Rate", f"{summary['http_req_failed_rate'] * 100:.1f}%"))
    if summary.get("malformed_lines"):
        rows.append(("Malformed Lines", str(summary["malformed_lines"])))
    rows.append(("Results File", str(load.metrics_file)))
    return rows


def format_run_markdown(run: Run) -> str:
    """Render one run as a Markdown summary document."""
    lines = [
        "# Horserace Benchmark Summary",
        "",
        f"**Run ID:** {run.run_id}",
        "",
        f"**Run Date:** {_display_time(run.timestamp)}",
        "",
        "## Results by Target",
        "",
    ]

    for record in run.targets:
        lines.append(f"### {record.target.upper()}")
        lines.append(f"**URL:** {record.url}")
        lines.append("")

        browser = record.browser
        if browser.error:
            lines.append(f"**Browser Error:** {browser.error}")
            lines.append("")
        else:
            lines.append("#### Browser Tests")
            lines.append("")
            lines.append("| Test | Status | Metrics |")
            lines.append("|------|--------|---------|")
            for test in browser.tests:
                status = "✅" if test.success else "❌"
                lines.append(f"| {test.name} | {status} | {_describe_test(test)} |")
            if browser.screenshot_path:
                lines.append("")
                lines.append(f"Screenshot: `{browser.screenshot_path}`")
            lines.append("")

        load = record.load
        if load.status == LOAD_COMPLETED:
            lines.append("#### k6 Load Tests")
            lines.append("")
            lines.append("| Metric | Value |")
            lines.append("|--------|-------|")
            for label, value in _load_summary_rows(load):
                lines.append(f"| {label} | {value} |")
            lines.append("")
        elif load.status == LOAD_FAILED:
            lines.append(f"**k6 Status:** ❌ Error: {load.error}")
            lines.append("")
        else:
            lines.append("**k6 Status:** Skipped (not installed)")
            lines.append("")

    return "\n".join(lines)


def format_run_console(run: Run) -> Group:
    """Render one run as rich console output."""
    renderables: list = [
        Text("BENCHMARK SUMMARY", style="bold"),
        Text(f"Run {run.run_id} ({_display_time(run.timestamp)})"),
    ]

    for record in run.targets:
        renderables.append(Text(""))
        renderables.append(Text(f"Target: {record.target.upper()}", style="bold cyan"))
        renderables.append(Text(f"  URL: {record.url}"))

        browser = record.browser
        if browser.error:
            renderables.append(Text(f"  Browser error: {browser.error}", style="red"))
        else:
            table = Table(title="Browser Tests", title_justify="left")
            table.add_column("Test")
            table.add_column("Status", justify="center")
            table.add_column("Metrics")
            for test in browser.tests:
                status = Text("PASS", style="green") if test.success else Text("FAIL", style="red")
                table.add_row(Text(test.name), status, Text(_describe_test(test)))
            renderables.append(table)

        load = record.load
        if load.status == LOAD_COMPLETED:
            table = Table(title="k6 Load Test", title_justify="left")
            table.add_column("Metric")
            table.add_column("Value")
            for label, value in _load_summary_rows(load):
                table.add_row(Text(label), Text(value))
            renderables.append(table)
        elif load.status == LOAD_FAILED:
            renderables.append(Text(f"  k6 error: {load.error}", style="red"))
        else:
            renderables.append(Text("  k6 skipped (not installed)", style="yellow"))

    return Group(*renderables)


# ---------------------------------------------------------------------------
# Run Comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComparedRun:
    run_id: str
    timestamp: str


@dataclass
class MetricComparison:
    metric: str
    label: str
    values: list[float]

    @property
    def min_value(self) -> float:
        return min(self.values)

    @property
    def max_value(self) -> float:
        return max(self.values)

    def marker(self, index: int) -> str | None:
        """'best' / 'worst' for the run at ``index``; None when all runs tie."""
        if self.min_value == self.max_value:
            return None
        value = self.values[index]
        if value == self.min_value:
            return "best"
        if value == self.max_value:
            return "worst"
        return None


@dataclass
class TargetComparison:
    key: str
    complete: bool
    url: str | None = None
    metrics: list[MetricComparison] = field(default_factory=list)
    load_results: list[LoadResult] = field(default_factory=list)


@dataclass
class ComparisonReport:
    runs: list[ComparedRun]
    targets: list[TargetComparison]


def _compare_target(target_key: str, runs: list[Run]) -> TargetComparison:
    records = [run.record_for(target_key) for run in runs]
    if any(record is None for record in records):
        return TargetComparison(key=target_key, complete=False)

    metric_keys = [metric_key for metric_key, _, _, _ in COMPARISON_METRICS]
    labels = {metric_key: label for metric_key, label, _, _ in COMPARISON_METRICS}

    # rows = metrics, columns = runs (chronological); partial rows are dropped
    frame = pd.DataFrame(
        {position: record.browser.metric_values() for position, record in enumerate(records)},
        index=metric_keys,
        columns=range(len(records)),
        dtype=float,
    ).dropna()

    metrics = [
        MetricComparison(metric=metric_key, label=labels[metric_key], values=[float(value) for value in row.tolist()])
        for metric_key, row in frame.iterrows()
    ]

    return TargetComparison(
        key=target_key,
        complete=True,
        url=records[0].url,
        metrics=metrics,
        load_results=[record.load for record in records],
    )


def compare_runs(run_ids: list[str], results_dir: str | Path) -> ComparisonReport:
    """Align per-target metrics across two or more persisted runs.

    Runs are ordered by timestamp, not by argument order. Targets missing from
    any run are flagged incomplete; metrics missing from any run are omitted.
    """
    if len(run_ids) < 2:
        raise InsufficientRunsError("need at least 2 runs to compare")

    runs = [load_run(results_dir, run_id) for run_id in run_ids]
    runs.sort(key=lambda run: _parse_timestamp(run.timestamp))

    target_keys: list[str] = []
    for run in runs:
        for key in run.target_keys:
            if key not in target_keys:
                target_keys.append(key)

    return ComparisonReport(
        runs=[ComparedRun(run_id=run.run_id, timestamp=run.timestamp) for run in runs],
        targets=[_compare_target(key, runs) for key in target_keys],
    )


def _marked_markdown(value: float, marker: str | None) -> str:
    display = _format_ms(value)
    if marker == "best":
        return f"**{display}** ⚡"
    if marker == "worst":
        return f"*{display}* 🐌"
    return display


def _load_availability(load: LoadResult) -> str:
    if load.status == LOAD_COMPLETED:
        return "✅"
    if load.status == LOAD_FAILED:
        return f"⚠️ error: {load.error}"
    return "❌ no results"


def format_comparison_markdown(report: ComparisonReport) -> str:
    """Render a comparison report as Markdown; columns are in chronological order."""
    lines = [
        "# Test Run Comparison",
        "",
        f"**Compared Runs:** {', '.join(run.run_id for run in report.runs)}",
        "",
        "| Run | Date |",
        "|-----|------|",
    ]
    for run in report.runs:
        lines.append(f"| {run.run_id} | {_display_time(run.timestamp)} |")
    lines.append("")

    for target in report.targets:
        lines.append(f"## {target.key.upper()}")
        lines.append("")

        if not target.complete:
            lines.append("⚠️ **Note:** Not all runs include this target")
            lines.append("")
            continue

        lines.append(f"**URL:** {target.url}")
        lines.append("")

        lines.append("### Browser Metrics")
        lines.append("")
        if target.metrics:
            lines.append("| Metric | " + " | ".join(run.run_id for run in report.runs) + " |")
            lines.append("|" + "---|" * (len(report.runs) + 1))
            for metric in target.metrics:
                cells = [_marked_markdown(value, metric.marker(index)) for index, value in enumerate(metric.values)]
                lines.append(f"| {metric.label} | " + " | ".join(cells) + " |")
        else:
            lines.append("_No browser metric was recorded in every run._")
        lines.append("")

        lines.append("### k6 Load Tests")
        lines.append("")
        lines.append("| Run | Status |")
        lines.append("|-----|--------|")
        for run, load in zip(report.runs, target.load_results):
            lines.append(f"| {run.run_id} | {_load_availability(load)} |")
        lines.append("")

    lines.append("Legend: ⚡ = fastest, 🐌 = slowest")
    return "\n".join(lines)


def format_comparison_console(report: ComparisonReport) -> Group:
    """Render a comparison report as rich console output."""
    renderables: list = [Text("Comparing Test Runs", style="bold")]
    for run in report.runs:
        renderables.append(Text(f"  {run.run_id}  {_display_time(run.timestamp)}"))

    for target in report.targets:
        renderables.append(Text(""))
        renderables.append(Text(f"Target: {target.key.upper()}", style="bold cyan"))
        if not target.complete:
            renderables.append(Text("  Not all runs include this target", style="yellow"))
            continue

        if target.metrics:
            table = Table(title="Browser Metrics", title_justify="left")
            table.add_column("Metric")
            for run in report.runs:
                table.add_column(run.run_id, justify="right")
            for metric in target.metrics:
                cells = []
                for index, value in enumerate(metric.values):
                    marker = metric.marker(index)
                    if marker == "best":
                        cells.append(Text(f"{_format_ms(value)} ⚡", style="bold green"))
                    elif marker == "worst":
                        cells.append(Text(f"{_format_ms(value)} 🐌", style="red"))
                    else:
                        cells.append(Text(_format_ms(value)))
                table.add_row(Text(metric.label), *cells)
            renderables.append(table)
        else:
            renderables.append(Text("  No browser metric was recorded in every run"))

        load_table = Table(title="k6 Load Tests", title_justify="left")
        load_table.add_column("Run")
        load_table.add_column("Status")
        for run, load in zip(report.runs, target.load_results):
            load_table.add_row(Text(run.run_id), Text(_load_availability(load)))
        renderables.append(load_table)

    return Group(*renderables)


def format_run_index(entries: list[RunIndexEntry], limit: int = RUN_LIST_LIMIT) -> str:
    """List the most recent index entries plus a count of older ones."""
    lines = ["Available Test Runs:", ""]
    for position, entry in enumerate(entries[:limit], start=1):
        lines.append(f"  {position}. {entry.run_id}")
        lines.append(f"     {_display_time(entry.timestamp)}")
        lines.append(f"     Targets: {', '.join(entry.targets)}")
        lines.append("")
    if len(entries) > limit:
        lines.append(f"  ... and {len(entries) - limit} more runs")
        lines.append("")
    lines.append("Usage: horserace compare <run_id_1> <run_id_2> [run_id_3...]")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Subcommand: run
# ---------------------------------------------------------------------------


def _load_registry(config: dict) -> TargetRegistry:
    if not config:
        err_console.print(f"Error: no configuration found (looked for {', '.join(CONFIG_FILENAMES)}).")
        err_console.print("  Create one with a [targets.<key>] table holding name and url.")
        sys.exit(1)
    try:
        return TargetRegistry.from_config(config)
    except ConfigError as exc:
        err_console.print(f"Error: invalid configuration: {escape(str(exc))}")
        sys.exit(1)


def cmd_run(args: argparse.Namespace, config: dict) -> None:
    """Benchmark the selected targets and record a new run."""
    registry = _load_registry(config)
    targets = registry.resolve(getattr(args, "targets", []))
    if not targets:
        err_console.print("Warning: no valid targets to benchmark; nothing recorded.")
        return

    results_dir = Path(getattr(args, "results_dir", DEFAULT_RESULTS_DIR))
    headless = not getattr(args, "headed", False)
    k6_binary = getattr(args, "k6_binary", None)
    verbose = getattr(args, "verbose", False)

    def browser_probe(target: Target, run_dir: Path) -> BrowserResult:
        return run_browser_probe(target.key, target.url, run_dir, headless=headless)

    def load_probe(target: Target, run_dir: Path) -> LoadResult:
        return run_load_probe(target.key, target.url, run_dir, k6_binary=k6_binary, verbose=verbose)

    err_console.print("Horserace Benchmarking Harness", style="bold")
    err_console.print("=" * 34)
    run = record_run(targets, results_dir, browser_probe, load_probe)

    out_console.print(format_run_console(run))
    err_console.print(f"\nHuman-readable summary saved to {run_directory(results_dir, run.run_id) / SUMMARY_FILENAME}")
    err_console.print("Benchmark complete!")


# ---------------------------------------------------------------------------
# Subcommand: compare
# ---------------------------------------------------------------------------


def cmd_compare(args: argparse.Namespace, config: dict) -> None:
    """Compare recorded runs, or list recent runs when no ids are given."""
    results_dir = Path(getattr(args, "results_dir", DEFAULT_RESULTS_DIR))
    run_ids = getattr(args, "run_ids", [])

    if not run_ids:
        if not (results_dir / RUN_INDEX_FILENAME).is_file():
            err_console.print("No runs found. Run benchmarks first with: horserace run")
            sys.exit(1)
        out_console.print(format_run_index(load_run_index(results_dir)), markup=False, highlight=False)
        return

    try:
        report = compare_runs(run_ids, results_dir)
    except HorseraceError as exc:
        err_console.print(f"Error: {escape(str(exc))}")
        sys.exit(1)

    comparison_path = results_dir / COMPARISON_FILENAME
    comparison_path.parent.mkdir(parents=True, exist_ok=True)
    comparison_path.write_text(format_comparison_markdown(report))

    out_console.print(format_comparison_console(report))
    err_console.print(f"\nComparison saved to {comparison_path}")


# ---------------------------------------------------------------------------
# Subcommand: targets
# ---------------------------------------------------------------------------


def cmd_targets(args: argparse.Namespace, config: dict) -> None:
    """List configured targets in configured order."""
    registry = _load_registry(config)
    table = Table(title="Configured Targets", title_justify="left")
    table.add_column("Key")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Description")
    for target in registry.all():
        table.add_row(Text(target.key), Text(target.name), Text(target.url), Text(target.description or ""))
    out_console.print(table)


# ---------------------------------------------------------------------------
# Subcommand: report
# ---------------------------------------------------------------------------


def cmd_report(args: argparse.Namespace, config: dict) -> None:
    """Print the stored summary of a run (default: latest)."""
    results_dir = Path(getattr(args, "results_dir", DEFAULT_RESULTS_DIR))
    run_id = getattr(args, "run_id", None)
    try:
        run = load_run(results_dir, run_id) if run_id else load_latest_run(results_dir)
    except RunNotFoundError as exc:
        err_console.print(f"Error: {escape(str(exc))}")
        sys.exit(1)
    out_console.print(format_run_console(run))


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = build_argument_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    # Load config
    config_path = Path(args.config) if args.config else discover_config_path()
    config = load_config(config_path)
    if args.verbose and config_path is not None:
        err_console.print(f"Using config: {config_path}")

    # Apply profile and config defaults
    profile_name = getattr(args, "profile", None)
    args = apply_profile(args, config, profile_name)

    # Dispatch to subcommand
    commands = {
        "run": cmd_run,
        "compare": cmd_compare,
        "targets": cmd_targets,
        "report": cmd_report,
    }

    handler = commands.get(args.command)
    if handler:
        handler(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
