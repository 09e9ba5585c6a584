"""Shared fixtures for the cbmfile test suite."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from cbmfile.core.config import CbmFileConfig, set_config

TRIAL_FIELD_DEFAULTS = {
    "use_cs": ("int", "1"),
    "use_pfpc_plast": ("int", "1"),
    "use_mfnc_plast": ("int", "0"),
    "cs_onset": ("int", "100"),
    "cs_len": ("int", "500"),
    "cs_percent": ("float", "0.5"),
    "use_us": ("int", "1"),
    "us_onset": ("int", "600"),
}


def render_trial(label: str, **overrides: str | None) -> str:
    """Build a `def trial` block; override a field with None to leave it out."""
    lines = [f"def trial {label}"]
    for name, (type_name, value) in TRIAL_FIELD_DEFAULTS.items():
        if name in overrides:
            if overrides[name] is None:
                continue
            value = overrides[name]
        lines.append(f"  {type_name} {name} {value}")
    lines.append("end")
    return "\n".join(lines)


def render_experiment(trial_def_body: str, extra_sections: str = "") -> str:
    """Wrap a trial_def body (and optional sections) in a run file."""
    body = textwrap.indent(trial_def_body.strip("\n"), "    ")
    return (
        "begin filetype run\n"
        f"{extra_sections}"
        "  begin section trial_def\n"
        f"{body}\n"
        "  end\n"
        "end\n"
    )


@pytest.fixture(autouse=True)
def default_config():
    """Isolate every test from CBMFILE_* variables in the environment."""
    set_config(CbmFileConfig())
    yield
    set_config(None)


@pytest.fixture
def lenient_config() -> CbmFileConfig:
    return CbmFileConfig(strict=False)


@pytest.fixture
def trial_source() -> Callable[..., str]:
    return render_trial


@pytest.fixture
def experiment_source() -> Callable[..., str]:
    return render_experiment


@pytest.fixture
def sample_experiment() -> str:
    """Two trials, a block, and a labeled experiment expanding to 14 trials."""
    trials = "\n".join(
        [
            render_trial("A"),
            render_trial("C", use_cs="0", cs_onset="200", cs_percent="0.25"),
        ]
    )
    hierarchy = textwrap.dedent(
        """
        def block B
          C 4
        end
        def experiment main
          A 2
          B 3
        end
        """
    )
    mf_input = textwrap.dedent(
        """\
          // mossy fiber input
          begin section mf_input
            int rate 40
            float noise 0.5
          end
        """
    )
    return render_experiment(trials + hierarchy, extra_sections=mf_input)


@pytest.fixture
def sample_build() -> str:
    return textwrap.dedent(
        """\
        begin filetype build
          begin section connectivity
            int num_gr 1024
            int num_go 64
          end
          begin section activity
            float gain 0.5
          end
        end
        """
    )


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
