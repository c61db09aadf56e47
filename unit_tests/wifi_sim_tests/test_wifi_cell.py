import unittest

from wifi_simulation.cell import WifiCell
from wifi_simulation.frames import PreambleType
from wifi_simulation.traffic import (
    BULK_TRANSFER_PORT,
    BulkTransferProfile,
    PacketSink,
    ReachabilityProbe,
    SteadyRateProfile,
)


class TestWifiCell(unittest.TestCase):

    def setUp(self):
        self.cell = WifiCell(n_stations=3, seed=11)
        self.forwarded = []
        self.cell.ap.forward_down_trace.connect(lambda psdu_map, tx: self.forwarded.append((psdu_map, tx)))

    def _associate_all(self):
        for station in self.cell.stations:
            self.cell.associate(station)
        self.cell.run(0.01)

    def test_association_assigns_aids_and_fires_assoc(self):
        bssids = []
        self.cell.stations[0].assoc_trace.connect(bssids.append)
        self._associate_all()
        self.assertEqual(bssids, [self.cell.ap.address])
        self.assertEqual(sorted(self.cell.ap.sta_list), [1, 2, 3])
        self.assertTrue(all(s.is_associated for s in self.cell.stations))

    def test_association_is_logged_on_the_devices_logger(self):
        with self.assertLogs("wifi_simulation.devices", level="INFO") as logs:
            self._associate_all()
        self.assertEqual(sum("Station associated" in line for line in logs.output), 3)

    def test_station_on_other_ssid_never_associates(self):
        station = self.cell.stations[0]
        station.set_ssid("network-B", self.cell.ap)
        self.cell.run(0.01)
        self.assertFalse(station.is_associated)

    def test_forced_dl_ofdma_allocates_every_station(self):
        self._associate_all()
        self.cell.ap.send(500, self.cell.stations[0].address, port=0)
        self.cell.run(0.05)
        psdu_map, tx = self.forwarded[0]
        self.assertEqual(tx.preamble, PreambleType.HE_MU)
        self.assertEqual(len(tx.he_mu_user_info), 3)
        self.assertEqual(list(psdu_map), [1])
        self.assertEqual(self.cell.stations[0].received_count, 1)

    def test_probe_and_sink(self):
        self._associate_all()
        station = self.cell.stations[1]
        probe = ReachabilityProbe(self.cell.ap, station, interval=0.05, duration=0.125)
        sink = PacketSink(station, BULK_TRANSFER_PORT)
        probe.start()
        client = BulkTransferProfile(max_bytes=20480).create_client(self.cell.ap, station)
        client.start()
        self.cell.run(1.0)
        # requests at +0, +50 and +100 ms
        self.assertEqual(probe.requests_sent, 3)
        self.assertEqual(probe.replies, 3)
        self.assertEqual(sink.total_rx, 20480)
        self.assertEqual(sink.rx_packets, 10)

    def test_disposed_client_stops_sending(self):
        self._associate_all()
        profile = SteadyRateProfile(data_rate_bps=1e6, packet_size=125)
        client = profile.create_client(self.cell.ap, self.cell.stations[2])
        client.start()
        self.cell.simulator.schedule_event(0.01, client.dispose)
        self.cell.run(0.5)
        # one packet per ms for 10 ms
        self.assertIn(client.packets_sent, (10, 11))
        self.assertFalse(client.running)


def test_steady_rate_install_delay_aligns_to_10ms_boundary():
    profile = SteadyRateProfile(data_rate_bps=1e6, packet_size=125)
    assert abs(profile.install_delay(0.1234) - (0.130 + 0.110 - 0.1234)) < 1e-9
    assert abs(profile.install_delay(0.130) - 0.110) < 1e-9
    assert BulkTransferProfile().install_delay(0.1234) == 0.047
