import unittest

import pytest

from ofdma_stats.errors import UnknownStationError
from ofdma_stats.records import GlobalAggregate, PerStationRecord
from ofdma_stats.trigger_tracker import TrackerState, TriggerFrameTracker

STA_A = "00:00:00:00:00:01"
STA_B = "00:00:00:00:00:02"
GRANTED = 200e-6


class TestTriggerFrameTracker(unittest.TestCase):

    def setUp(self):
        self.records = {s: PerStationRecord(s) for s in (STA_A, STA_B)}
        self.g = GlobalAggregate()
        self.tracker = TriggerFrameTracker(self.records, self.g)

    def test_starts_idle_and_ignores_responses_without_window(self):
        self.assertEqual(self.tracker.state, TrackerState.IDLE)
        self.assertIsNone(self.tracker.on_response(STA_A, 100e-6))
        self.assertEqual(self.records[STA_A].n_he_tb_ppdus, 0)

    def test_failed_window_then_full_window(self):
        # window 1: nobody answers
        self.tracker.on_basic_trigger(GRANTED, [STA_A, STA_B])
        self.assertEqual(self.tracker.state, TrackerState.WINDOW_OPEN)

        # window 2: both stations use the whole grant
        self.tracker.on_basic_trigger(GRANTED, [STA_A, STA_B])
        self.assertEqual(self.g.n_failed_trigger_frames, 1)
        self.assertEqual(self.tracker.on_response(STA_A, GRANTED), pytest.approx(1.0))
        self.assertEqual(self.tracker.on_response(STA_B, GRANTED), pytest.approx(1.0))
        self.assertEqual(self.g.ul_completeness.count, 0)

        # trigger 3 closes window 2
        self.tracker.on_basic_trigger(GRANTED, [STA_A])
        self.assertEqual(self.g.n_failed_trigger_frames, 1)
        self.assertEqual(self.g.n_basic_trigger_frames_sent, 3)
        self.assertEqual(self.g.ul_completeness.count, 1)
        self.assertAlmostEqual(self.g.ul_completeness.mean, 1.0)

    def test_partial_response_ratio(self):
        self.tracker.on_basic_trigger(GRANTED, [STA_A, STA_B])
        ratio = self.tracker.on_response(STA_A, GRANTED / 2)
        self.assertAlmostEqual(ratio, 0.5)
        self.tracker.on_basic_trigger(GRANTED, [STA_A, STA_B])
        # 100 us responded out of 2 x 200 us granted
        self.assertAlmostEqual(self.g.ul_completeness.mean, 0.25)
        self.assertEqual(self.records[STA_A].ul_length_ratio.count, 1)

    def test_last_window_is_never_scored(self):
        self.tracker.on_basic_trigger(GRANTED, [STA_A])
        self.tracker.on_response(STA_A, GRANTED)
        self.assertEqual(self.g.ul_completeness.count, 0)
        self.assertEqual(self.g.n_failed_trigger_frames, 0)

    def test_solicitation_counters_and_unresponded_ratio(self):
        for _ in range(4):
            self.tracker.on_basic_trigger(GRANTED, [STA_A, STA_B])
            self.tracker.on_response(STA_A, GRANTED)
        self.assertEqual(self.records[STA_A].n_soliciting_trigger_frames, 4)
        self.assertEqual(self.records[STA_B].n_soliciting_trigger_frames, 4)
        self.assertEqual(self.records[STA_A].unresponded_tf_ratio, 0.0)
        self.assertEqual(self.records[STA_B].unresponded_tf_ratio, 1.0)

    def test_unknown_station_is_fatal(self):
        with self.assertRaises(UnknownStationError):
            self.tracker.on_basic_trigger(GRANTED, [STA_A, "00:00:00:00:00:63"])
        # nothing was counted for the rejected trigger
        self.assertEqual(self.g.n_basic_trigger_frames_sent, 0)
        self.assertEqual(self.records[STA_A].n_soliciting_trigger_frames, 0)
        self.tracker.on_basic_trigger(GRANTED, [STA_A])
        with self.assertRaises(AssertionError):
            self.tracker.on_response("00:00:00:00:00:63", GRANTED)
