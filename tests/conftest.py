"""Shared test fixtures for tlog."""

import copy

import pytest
import yaml


def _suite(id="suite-login", title="Login Suite", **overrides):
    record = {
        "id": id,
        "title": title,
        "tags": ["auth"],
        "description": "Login flow regression",
        "scoped": True,
        "owners": ["qa"],
        "duration": {
            "scheduled": {"start": "2026-02-01", "end": "2026-02-05"},
            "actual": {"start": "2026-02-02", "end": "2026-02-06"},
        },
        "related": [],
        "remarks": [],
    }
    record.update(copy.deepcopy(overrides))
    return record


def _case(id="case-login-001", title="Valid login", **overrides):
    record = {
        "id": id,
        "title": title,
        "tags": ["auth"],
        "description": "Login with valid credentials",
        "scoped": True,
        "status": "todo",
        "operations": ["open login page", "submit credentials"],
        "related": [],
        "remarks": [],
        "completedDay": None,
        "tests": [],
        "issues": [],
    }
    record.update(copy.deepcopy(overrides))
    return record


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure no env leakage between tests."""
    for var in (
        "TLOG_WORKSPACE_ROOT",
        "TLOG_TESTS_DIR",
        "TLOG_TEMPLATES_DIR",
        "TLOG_TRASH_DIR",
        "TLOG_LOG_FORMAT",
        "TLOG_LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_suite():
    """Factory for a complete, valid suite mapping."""
    return _suite


@pytest.fixture
def make_case():
    """Factory for a complete, valid testcase mapping."""
    return _case


@pytest.fixture
def write_yaml():
    def _write(path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def workspace_root(tmp_path, write_yaml):
    """Workspace with two suites and three cases under tests/.

    tests/login    suite-login (owners qa): case-login-001 done, case-login-002 todo
    tests/checkout suite-checkout (owners dev): case-checkout-001 doing, unscoped
    """
    root = tmp_path / "ws"
    tests = root / "tests"
    write_yaml(tests / "login" / "index.yaml", _suite())
    write_yaml(
        tests / "login" / "case-login-001-valid-login.testcase.yaml",
        _case(
            status="done",
            completedDay="2026-02-03",
            tags=["auth", "smoke"],
            related=["case-login-002"],
            tests=[{"name": "main", "expected": "dashboard", "actual": "dashboard",
                    "trails": [], "status": "pass"}],
        ),
    )
    write_yaml(
        tests / "login" / "case-login-002-locked-account.testcase.yaml",
        _case(
            id="case-login-002",
            title="Locked account",
            issues=[{
                "incident": "Lockout message missing",
                "owners": ["qa"],
                "causes": ["copy not translated"],
                "solutions": [],
                "status": "open",
                "detectedDay": "2026-02-02",
                "completedDay": None,
                "related": [],
                "remarks": [],
            }],
        ),
    )
    write_yaml(
        tests / "checkout" / "index.yaml",
        _suite(id="suite-checkout", title="Checkout Suite", owners=["dev"], tags=["payment"]),
    )
    write_yaml(
        tests / "checkout" / "case-checkout-001-pay.testcase.yaml",
        _case(
            id="case-checkout-001",
            title="Pay",
            status="doing",
            scoped=False,
            tags=["payment"],
            related=["suite-login", "ghost-id"],
        ),
    )
    return root
