"""
Scan log replay-guard tests.
"""

import threading

from herbchain.core import LogicalClock
from herbchain.scanlog import ScanLog


class TestScanLog:

    def test_first_scan_recorded(self, clock):
        log = ScanLog(clock=clock)
        result = log.record_scan("B1-001")
        assert result.first_seen
        assert not result.counterfeit_suspected
        assert log.first_scan("B1-001") == result.first_scan_timestamp

    def test_repeat_scan_reports_original_timestamp(self, clock):
        log = ScanLog(clock=clock)
        first = log.record_scan("B1-001")
        again = log.record_scan("B1-001")
        assert not again.first_seen
        assert again.counterfeit_suspected
        assert again.first_scan_timestamp == first.first_scan_timestamp

    def test_repeat_scans_are_idempotent(self, clock):
        log = ScanLog(clock=clock)
        log.record_scan("B1-001")
        before = log.to_dict()
        for _ in range(5):
            log.record_scan("B1-001")
        assert log.to_dict() == before
        assert len(log) == 1

    def test_restored_entries_act_as_guard(self):
        log = ScanLog(entries={"B1-001": 1234}, clock=LogicalClock(lambda: 2.0))
        result = log.record_scan("B1-001")
        assert not result.first_seen
        assert result.first_scan_timestamp == 1234
        assert "B1-001" in log

    def test_concurrent_scans_single_first(self, clock):
        log = ScanLog(clock=clock)
        barrier = threading.Barrier(16)
        results = []
        lock = threading.Lock()

        def scan():
            barrier.wait()
            r = log.record_scan("B1-007")
            with lock:
                results.append(r)

        threads = [threading.Thread(target=scan) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        firsts = [r for r in results if r.first_seen]
        assert len(firsts) == 1
        assert {r.first_scan_timestamp for r in results} == {firsts[0].first_scan_timestamp}
