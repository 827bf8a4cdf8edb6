import json
import os
import tempfile
import unittest
from winemint.history import MintHistory
from winemint.models import MintingStatus, Winery
from winemint.wineries import mock_wineries


def _status(wine_id, status, winery_id="mock-winery-1", **kwargs):
    return MintingStatus(wine_id=wine_id, winery_id=winery_id, status=status, **kwargs)


class TestMintHistory(unittest.TestCase):
    def setUp(self):
        self.history = MintHistory()

    def test_record_replaces_by_wine_id(self):
        self.history.record(_status("w1", "minting"))
        self.history.record(_status("w1", "confirming", tx_id="tx1"))

        self.assertEqual(len(self.history), 1)
        self.assertEqual(self.history.get("w1").status, "confirming")
        self.assertEqual(self.history.get("w1").tx_id, "tx1")

    def test_resume_data_counts(self):
        self.history.record(_status("w1", "success"))
        self.history.record(_status("w2", "failed", error="boom"))
        self.history.record(_status("w3", "pending"))
        self.history.record(_status("w4", "minting"))
        self.history.record(_status("w5", "confirming"))

        data = self.history.resume_data()
        self.assertEqual(data.completed, 1)
        self.assertEqual(data.failed, 1)
        self.assertEqual(data.pending, 2)
        self.assertEqual(data.confirming, 1)
        self.assertEqual(data.total, 5)
        self.assertTrue(data.can_resume)
        self.assertEqual(self.history.resume_offset(), 1)

    def test_cannot_resume_when_everything_succeeded(self):
        self.history.record(_status("w1", "success"))
        self.history.record(_status("w2", "success"))
        self.assertFalse(self.history.resume_data().can_resume)

    def test_clear_resets_resume_state(self):
        self.history.record(_status("w1", "success"))
        self.history.record(_status("w2", "failed"))
        self.history.clear()

        self.assertEqual(len(self.history), 0)
        self.assertEqual(self.history.resume_offset(), 0)
        self.assertFalse(self.history.resume_data().can_resume)

    def test_minted_assets_track_success_only(self):
        self.history.record(_status("w1", "success"))
        self.history.record(_status("w2", "confirming"))
        self.assertEqual(self.history.minted_assets, {"w1"})

        # A success that later fails again is no longer considered minted
        self.history.record(_status("w1", "failed"))
        self.assertEqual(self.history.minted_assets, set())
        self.assertFalse(self.history.is_minted("w1"))

    def test_filter_unminted_keeps_failed_and_order(self):
        wineries = mock_wineries()
        self.history.record(_status("mock-wine-1", "success"))
        self.history.record(_status("mock-wine-2", "failed"))

        filtered = self.history.filter_unminted(wineries)
        self.assertEqual([w.id for w in filtered], ["mock-winery-1", "mock-winery-2"])
        self.assertEqual([w.id for w in filtered[0].wines], ["mock-wine-2"])
        self.assertEqual([w.id for w in filtered[1].wines], ["mock-wine-3"])
        # Input is not modified
        self.assertEqual(len(wineries[0].wines), 2)

    def test_for_winery(self):
        self.history.record(_status("w1", "success", winery_id="a"))
        self.history.record(_status("w2", "failed", winery_id="b"))
        self.assertEqual([s.wine_id for s in self.history.for_winery("a")], ["w1"])

    def test_build_results_only_successes(self):
        wineries = mock_wineries()
        self.history.record(_status("mock-wine-2", "success", tx_id="tx2", token_ref_id="ref2"))
        self.history.record(_status("mock-wine-3", "failed", winery_id="mock-winery-2"))

        results = self.history.build_results(wineries, "main")
        self.assertEqual(len(results), 1)
        entry = results[0]
        self.assertEqual(entry["wineId"], "mock-wine-2")
        self.assertEqual(entry["wineName"], "Reserve Collection 2023")
        self.assertEqual(entry["wineryName"], "Mock Winery Alpha")
        self.assertEqual(entry["txId"], "tx2")
        self.assertEqual(entry["tokenRefId"], "ref2")
        self.assertEqual(entry["network"], "main")

    def test_build_results_unknown_winery(self):
        self.history.record(_status("ghost", "success", winery_id="nowhere"))
        results = self.history.build_results([Winery(id="x", name="X")], "test")
        self.assertIsNone(results[0]["wineryName"])
        self.assertIsNone(results[0]["wineName"])

    def test_write_results(self):
        self.history.record(_status("mock-wine-1", "success", tx_id="tx1", token_ref_id="ref1"))
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "results.json")
            count = self.history.write_results(path, mock_wineries(), "test")
            with open(path) as f:
                data = json.load(f)
        self.assertEqual(count, 1)
        self.assertEqual(data[0]["txId"], "tx1")


if __name__ == "__main__":
    unittest.main()
