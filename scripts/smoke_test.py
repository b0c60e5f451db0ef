#!/usr/bin/env python3
"""
Alarm Ledger API smoke test against a running instance.
Run: python scripts/smoke_test.py [base_url]
"""

import sys
import json
import httpx
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass
class CheckResult:
    name: str
    passed: bool
    status_code: int
    message: str = ""


class SmokeTester:
    def __init__(self, base_url: str = "http://localhost:3000", utc_offset_minutes: int = 540):
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api/v1"
        self.device_tz = timezone(timedelta(minutes=utc_offset_minutes))
        self.results: list[CheckResult] = []
        self.client = httpx.Client(timeout=30.0)

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
    ) -> tuple[int, dict | list | str]:
        """Make API request and return (status_code, response_data)."""
        url = f"{self.api_url}{endpoint}"
        try:
            resp = self.client.request(method, url, json=data, params=params)
            try:
                return resp.status_code, resp.json()
            except json.JSONDecodeError:
                return resp.status_code, resp.text
        except httpx.RequestError as e:
            return 0, str(e)

    def check(
        self,
        name: str,
        method: str,
        endpoint: str,
        data: dict | None = None,
        params: dict | None = None,
        expected_status: int = 200,
    ) -> dict | list | str | None:
        """Run one request and record the result."""
        status, response = self._request(method, endpoint, data, params)
        passed = status == expected_status

        result = CheckResult(
            name=name,
            passed=passed,
            status_code=status,
            message=str(response)[:200] if not passed else "",
        )
        self.results.append(result)

        symbol = "✓" if passed else "✗"
        print(f"  {symbol} {name} (HTTP {status})")
        if not passed:
            print(f"    Expected: {expected_status}, Got: {status}")
            print(f"    Response: {result.message}")

        return response if passed else None

    def _message(self, mac: str, flag: int, code: int, counter: int) -> str:
        now = datetime.now(self.device_tz)
        return f"{now:%Y-%m-%d %H:%M:%S} {mac} 192.0.2.10 {flag} {code} {counter}"

    def run_all(self) -> int:
        """Run the smoke checks."""
        print("=" * 50)
        print("Alarm Ledger Smoke Test")
        print(f"Base URL: {self.base_url}")
        print("=" * 50)

        # Health check
        print("\n[Health Check]")
        try:
            resp = self.client.get(f"{self.base_url}/health")
        except httpx.RequestError as e:
            print(f"  ✗ Service unreachable: {e}")
            return 1
        if resp.status_code == 200:
            print("  ✓ Health check passed")
            self.results.append(CheckResult("Health", True, 200))
        else:
            print(f"  ✗ Health check failed (HTTP {resp.status_code})")
            self.results.append(CheckResult("Health", False, resp.status_code))
            return 1

        mac = "02:00:5E:00:53:01"

        # Ingestion
        print("\n[Ingestion]")
        self.check(
            "Raise alarm",
            "POST",
            "/alarms/events",
            {"message": self._message(mac, 1, 3, 1)},
            expected_status=202,
        )
        self.check(
            "Reject malformed message",
            "POST",
            "/alarms/events",
            {"message": "not an alarm"},
            expected_status=422,
        )

        # Registry
        print("\n[Registry]")
        response = self.check("Register serial", "PUT", f"/devices/{mac}/serial", {"serial": "SMOKE-1"})
        if response and isinstance(response, dict):
            print(f"    Backfilled: {response.get('updated_record_count')}")
        self.check("Lookup serial", "GET", f"/devices/{mac}/serial")

        # Queries
        print("\n[Queries]")
        response = self.check("Active alarms for device", "GET", "/alarms/search", params={"mac": mac, "active": "true"})
        if response and isinstance(response, dict):
            print(f"    Active: {response.get('count', 0)}")
        self.check("Search without filters", "GET", "/alarms/search", expected_status=400)

        self.check(
            "Clear alarm",
            "POST",
            "/alarms/events",
            {"message": self._message(mac, 0, 3, 2)},
            expected_status=202,
        )
        response = self.check("Full history", "GET", "/alarms", params={"limit": 10})
        if response and isinstance(response, dict):
            print(f"    Returned: {response.get('count', 0)}")
        self.check("Alarm codes", "GET", "/alarms/codes")

        # Summary
        print("\n" + "=" * 50)
        passed = sum(1 for r in self.results if r.passed)
        total = len(self.results)
        print(f"Results: {passed}/{total} checks passed")

        if passed == total:
            print("✓ All checks passed!")
            return 0
        else:
            print("✗ Some checks failed")
            for r in self.results:
                if not r.passed:
                    print(f"  - {r.name}: HTTP {r.status_code}")
            return 1


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000"
    tester = SmokeTester(base_url)
    sys.exit(tester.run_all())


if __name__ == "__main__":
    main()
