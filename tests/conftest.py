"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (file system, no Anki)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings with defaults only (no .env, no environment overrides)."""
    from drill2anki.config import Settings

    return Settings(_env_file=None)


@pytest.fixture
def basic_org():
    """A small org file with one simple drill entry."""
    return (
        "#+TITLE: French\n"
        "#+ANKI_DECK: French\n"
        "\n"
        "* Vocabulary\n"
        "** Greeting                                                          :drill:\n"
        ":PROPERTIES:\n"
        ":ID: greet-1\n"
        ":END:\n"
        "How do you say /hello/?\n"
        "*** Answer\n"
        "Bonjour\n"
    )


@pytest.fixture
def reviewed_org():
    """A drill file mixing card types, with org-drill review data on some entries."""
    return (
        "#+TITLE: Geography\n"
        "\n"
        "* Capitals\n"
        ":PROPERTIES:\n"
        ":ANKI_DECK: Geography::Capitals\n"
        ":END:\n"
        "** France                                                            :drill:\n"
        "SCHEDULED: <2024-03-08 Fri>\n"
        ":PROPERTIES:\n"
        ":ID: capital-fr\n"
        ":DRILL_CARD_TYPE: hide1cloze\n"
        ":DRILL_LAST_INTERVAL: 6.2\n"
        ":DRILL_REPEATS_SINCE_FAIL: 2\n"
        ":DRILL_TOTAL_REPEATS: 3\n"
        ":DRILL_FAILURE_COUNT: 1\n"
        ":DRILL_AVERAGE_QUALITY: 3.5\n"
        ":DRILL_EASE: 2.36\n"
        ":DRILL_LAST_QUALITY: 4\n"
        ":DRILL_LAST_REVIEWED: [2024-03-01 Fri 10:00]\n"
        ":END:\n"
        "The capital of [France] is [Paris||city].\n"
        "** Cat                                                               :drill:\n"
        ":PROPERTIES:\n"
        ":DRILL_CARD_TYPE: twosided\n"
        ":END:\n"
        "*** English\n"
        "cat\n"
        "*** French\n"
        "chat\n"
        "** Colours                                                           :drill:\n"
        ":PROPERTIES:\n"
        ":DRILL_CARD_TYPE: multisided\n"
        ":END:\n"
        "*** English\n"
        "red\n"
        "*** French\n"
        "rouge\n"
        "*** German\n"
        "rot\n"
    )


@pytest.fixture
def org_file(tmp_path, reviewed_org):
    """Write the reviewed sample to a temporary .org file."""
    path = tmp_path / "geography.org"
    path.write_text(reviewed_org, encoding="utf-8")
    return path
