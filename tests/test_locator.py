"""Tests for the PackageLocator."""

import pytest

from crx_reconciler.errors import AuthenticationError, EndpointUnavailableError
from crx_reconciler.execution.retry import RetryExecutor
from crx_reconciler.models.budgets import RetryBudget
from crx_reconciler.models.package import ObservedState, PackageIdentity, PackageRecord
from crx_reconciler.world_model.locator import PackageLocator, find_version
from fakes import FakePackageAPI


def _records(*versions, unpacked=()) -> list:
    return [
        PackageRecord(
            name="site",
            group="acme",
            version=v,
            last_unpacked=1700000000000 if v in unpacked else None,
        )
        for v in versions
    ]


def _identity(version: str) -> PackageIdentity:
    return PackageIdentity(group="acme", name="site", version=version)


class FailingAPI(FakePackageAPI):
    def __init__(self, errors, records=None):
        super().__init__(records)
        self.errors = list(errors)

    def list(self, path, include_versions=True):
        if self.errors:
            self.calls.append(("list", path))
            raise self.errors.pop(0)
        return super().list(path, include_versions)


class TestFindVersion:
    def test_first_exact_match(self):
        records = _records("1.0", "1.1") + _records("1.1", unpacked=("1.1",))
        found = find_version(records, "1.1")
        assert found is records[1]

    def test_no_match(self):
        assert find_version(_records("1.0", "1.1"), "1.10") is None

    def test_empty(self):
        assert find_version([], "1.0") is None


class TestPackageLocator:
    def setup_method(self):
        self.sleeps = []
        self.executor = RetryExecutor(sleep=self.sleeps.append)
        self.retry = RetryBudget(attempts=3, delay_seconds=10)

    def test_present_when_not_unpacked(self):
        api = FakePackageAPI(_records("1.0", "1.1"))
        observation = PackageLocator(api, self.executor).find(_identity("1.1"), self.retry)

        assert observation.state == ObservedState.PRESENT
        assert observation.version == "1.1"
        assert api.calls == [("list", "/etc/packages/acme/site-.zip")]

    def test_installed_when_unpacked(self):
        api = FakePackageAPI(_records("1.0", "1.1", unpacked=("1.1",)))
        observation = PackageLocator(api, self.executor).find(_identity("1.1"), self.retry)
        assert observation.state == ObservedState.INSTALLED

    def test_absent_regardless_of_other_versions(self):
        api = FakePackageAPI(_records("1.0", "1.1", unpacked=("1.0", "1.1")))
        observation = PackageLocator(api, self.executor).find(_identity("2.0"), self.retry)

        assert observation.state == ObservedState.ABSENT
        assert observation.version is None

    def test_lookup_is_retried(self):
        api = FailingAPI([EndpointUnavailableError("down")] * 2, _records("1.0"))
        observation = PackageLocator(api, self.executor).find(_identity("1.0"), self.retry)

        assert observation.state == ObservedState.PRESENT
        assert len(api.calls) == 3
        assert self.sleeps == [10, 10]

    def test_lookup_exhaustion_propagates(self):
        api = FailingAPI([EndpointUnavailableError("down")] * 10)
        with pytest.raises(EndpointUnavailableError):
            PackageLocator(api, self.executor).find(_identity("1.0"), self.retry)
        assert len(api.calls) == 4

    def test_authentication_failure_not_retried(self):
        api = FailingAPI([AuthenticationError("refused")])
        with pytest.raises(AuthenticationError):
            PackageLocator(api, self.executor).find(_identity("1.0"), self.retry)
        assert self.sleeps == []
