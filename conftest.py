"""File for tests."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml

from processor import VirtualMachine


def pytest_configure(config: Any) -> None:
    """Configure the tests."""
    config.addinivalue_line(
        "markers",
        "golden_test(pattern): parameterize test with YAML program records matching pattern",
    )


def _iter_marker_patterns(node: Any) -> Iterator[str]:
    """Yield pattern strings from golden_test markers on `node`."""
    for m in node.iter_markers(name="golden_test"):
        if m.args:
            yield m.args[0]
        else:
            yield "golden/*.yaml"


def _load_record(p: Path) -> dict[str, Any]:
    """Load one golden record; load failures are kept so the test reports them."""
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        return {"__yaml_load_error__": str(e), "__path__": str(p)}
    if not isinstance(data, dict):
        return {"__yaml_load_error__": "record is not a mapping", "__path__": str(p)}
    data.setdefault("__path__", str(p))
    data.setdefault("__name__", p.stem)
    return data


def pytest_generate_tests(metafunc: Any) -> None:
    """Generate tests (parametrization) from YAML golden files."""
    if "golden" not in metafunc.fixturenames:
        return

    patterns: list[str] = list(_iter_marker_patterns(metafunc.definition)) or ["golden/*.yaml"]
    root = Path(metafunc.config.rootpath)

    files: list[Path] = []
    for pat in patterns:
        files.extend(sorted(root.glob(pat)))

    if not files:
        return

    metafunc.parametrize("golden", [_load_record(p) for p in files], ids=[p.stem for p in files])


@pytest.fixture
def vm() -> VirtualMachine:
    """A machine with the default 16-cell tape and nothing loaded."""
    return VirtualMachine()
