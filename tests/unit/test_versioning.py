import pytest

from maven_scm_checkout.errors import UnparsableVersion
from maven_scm_checkout.versioning import (
    compare_versions,
    is_prerelease,
    is_stable,
    next_snapshot,
    plan_snapshot_change,
    select_latest_release,
    sort_versions,
)


@pytest.mark.parametrize(
    "released,expected",
    [
        ("2.5", "2.6-SNAPSHOT"),
        ("1.0.0", "1.0.1-SNAPSHOT"),
        ("1.2", "1.3-SNAPSHOT"),
        ("7", "8-SNAPSHOT"),
        ("3.9", "3.10-SNAPSHOT"),
        ("2.0.1.Final", "2.0.2-SNAPSHOT"),
        ("1.0-rc1", "1.1-SNAPSHOT"),
        (" 4.1 ", "4.2-SNAPSHOT"),
    ],
)
def test_next_snapshot(released: str, expected: str):
    assert next_snapshot(released) == expected


@pytest.mark.parametrize("bad", ["", "   ", "LATEST", "v1.0", "${project.version}"])
def test_next_snapshot_rejects_non_numeric(bad: str):
    with pytest.raises(UnparsableVersion):
        next_snapshot(bad)


def test_plan_snapshot_change():
    change = plan_snapshot_change("org.apache.maven.plugins", "maven-clean-plugin", "2.5")
    assert change.old_version == "2.5"
    assert change.new_version == "2.6-SNAPSHOT"
    assert change.artifact_id == "maven-clean-plugin"


@pytest.mark.parametrize("v", ["1.2.3", "1.0.Final", "2.0.RELEASE", "3.1.0-GA", "1.0-something"])
def test_stable(v: str):
    assert is_stable(v) is True


@pytest.mark.parametrize(
    "v", ["1.0-SNAPSHOT", "2.0-rc1", "2.0.RC2", "1.0.BETA1", "1.0-alpha", "1.0-m1", "1.0.M2", "1.0-ea"]
)
def test_prerelease(v: str):
    assert is_prerelease(v) is True


def test_numeric_ordering():
    assert compare_versions("1.2.10", "1.2.9") == 1
    assert compare_versions("2.0", "1.9.9") == 1
    assert compare_versions("1.0-1", "1.0.1") == 0
    assert compare_versions("v2", "2") == 0


def test_release_tail_beats_prerelease_tail():
    assert compare_versions("1.0", "1.0-beta1") == 1
    assert compare_versions("1.0-rc1", "1.0") == -1
    assert compare_versions("2.0.RELEASE", "2.0.Final") == 0


def test_sort_versions_rejects_blank():
    with pytest.raises(ValueError):
        sort_versions(["1", " "])


def test_select_latest_release_skips_prereleases():
    assert select_latest_release(["2.4", "2.6-SNAPSHOT", "2.5", "3.0-beta-1", "2.10"]) == "2.10"
    assert select_latest_release(["1.0-SNAPSHOT"]) is None
    assert select_latest_release([]) is None
