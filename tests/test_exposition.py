import unittest
import urllib.request

from prometheus_client.parser import text_string_to_metric_families
from transitions import MachineError

from metric_registry import MetricName, MetricRegistry
from utils.config import Settings
from utils.exposition import METRICS_PATH, ExpositionServer


class ExpositionServerTests(unittest.TestCase):
    def setUp(self):
        self.registry = MetricRegistry(Settings())
        self.server = ExpositionServer(self.registry.registry, '127.0.0.1:0')
        self.addCleanup(self.stop_if_running, self.server)

    @staticmethod
    def stop_if_running(server):
        if server.state == 'running':
            server.stop()

    def fetch_samples(self):
        url = f'http://127.0.0.1:{self.server.server_port}{METRICS_PATH}'
        with urllib.request.urlopen(url, timeout=5) as response:
            body = response.read().decode('utf-8')
        return [sample for family in text_string_to_metric_families(body) for sample in family.samples]

    def test_serves_text_format(self):
        self.registry.inc_counter(MetricName.METHOD_RESPONSE, 'A', '200', 'INVITE')
        self.registry.set_gauge(MetricName.XRTP_MOS, 4.2, 'A')
        self.server.start()
        self.assertEqual(self.server.state, 'running')
        samples = {(sample.name, tuple(sorted(sample.labels.items()))): sample.value
                   for sample in self.fetch_samples()}
        method_labels = (('method', 'INVITE'), ('response', '200'), ('target_name', 'A'))
        self.assertEqual(samples[('heplify_method_response_total', method_labels)], 1)
        self.assertEqual(samples[('heplify_xrtp_mos', (('target_name', 'A'),))], 4.2)

    def test_created_series_are_not_exposed(self):
        self.registry.inc_counter(MetricName.PACKETS_TOTAL, 'sip')
        self.server.start()
        names = {sample.name for sample in self.fetch_samples()}
        self.assertIn('heplify_packets_total', names)
        self.assertFalse(any(name.endswith('_created') for name in names))

    def test_lifecycle(self):
        self.assertEqual(self.server.state, 'stopped')
        self.assertIsNone(self.server.server_port)
        self.server.start()
        with self.assertRaises(MachineError):
            self.server.start()
        self.server.stop()
        self.assertEqual(self.server.state, 'stopped')
        self.assertIsNone(self.server.server_port)
        with self.assertRaises(MachineError):
            self.server.stop()

    def test_bind_conflict_keeps_server_stopped(self):
        self.server.start()
        other = ExpositionServer(self.registry.registry, f'127.0.0.1:{self.server.server_port}')
        with self.assertRaises(OSError):
            other.start()
        self.assertEqual(other.state, 'stopped')


if __name__ == '__main__':
    unittest.main()
