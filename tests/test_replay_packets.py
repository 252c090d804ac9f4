import contextlib
import io
import json
import os
import tempfile
import unittest

from collect_metrics import MetricsCollector
from metric_registry import MetricName
from replay_packets import main, packet_from_record, read_packets, replay
from utils.config import Settings

RECORDS = [
    {'proto_type': 1, 'src_ip': '10.0.0.1', 'dst_ip': '10.0.0.2', 'payload': 'BYE sip:bob SIP/2.0',
     'sip': {'method': 'BYE', 'cseq_method': 'BYE', 'call_id': 'c1',
             'rtp_stat_value': 'CS=5000;PR=100;PS=100;PL=2,3;JI=10,20;DL=30,0,0'}},
    {'proto_type': 5, 'src_ip': '10.0.0.1', 'dst_ip': '10.0.0.2',
     'payload': {'report_blocks': [{'fraction_lost': 1, 'packets_lost': 2, 'ia_jitter': 3, 'dlsr': 4}]}},
    {'proto_type': 100, 'payload': 'log'},
]


class ReplayTests(unittest.TestCase):
    def write_packets(self, lines):
        handle, file_path = tempfile.mkstemp(suffix='.jsonl')
        with os.fdopen(handle, 'w', encoding='utf-8') as packets_file:
            packets_file.write('\n'.join(lines) + '\n')
        self.addCleanup(os.remove, file_path)
        return file_path

    def test_packet_from_record(self):
        packet = packet_from_record(RECORDS[1])
        self.assertEqual(packet.proto_type, 5)
        self.assertIsNone(packet.sip)
        self.assertEqual(json.loads(packet.payload)['report_blocks'][0]['dlsr'], 4)

        packet = packet_from_record(RECORDS[0])
        self.assertEqual(packet.sip.call_id, 'c1')
        self.assertEqual(packet.payload, b'BYE sip:bob SIP/2.0')

    def test_invalid_lines_are_skipped(self):
        file_path = self.write_packets([json.dumps(RECORDS[2]), '', '{broken', '{"payload": "x"}', '[]'])
        with self.assertLogs(level='WARNING'):
            packets = list(read_packets(file_path))
        self.assertEqual(len(packets), 1)

    def test_replay(self):
        file_path = self.write_packets([json.dumps(record) for record in RECORDS])
        collector = MetricsCollector(Settings())
        self.assertEqual(replay(file_path, collector), 3)
        registry = collector.registry
        self.assertEqual(registry.get_sample_value(MetricName.METHOD_RESPONSE, '', 'BYE', 'BYE'), 1)
        self.assertEqual(registry.get_sample_value(MetricName.XRTP_CS, ''), 5)
        self.assertEqual(registry.get_sample_value(MetricName.RTCP_DLSR), 4)
        self.assertEqual(registry.get_sample_value(MetricName.PACKETS_TOTAL, 'log'), 1)

    def test_main_prints_series(self):
        file_path = self.write_packets([json.dumps(record) for record in RECORDS])
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            self.assertEqual(main([file_path, '--log-level', 'ERROR']), 0)
        self.assertIn('heplify_xrtp_mos', output.getvalue())

    def test_main_rejects_invalid_configuration(self):
        file_path = self.write_packets([])
        config_path = self.write_packets(['prom_target_ip: 10.0.0.1', 'prom_target_name: A,B'])
        self.assertEqual(main([file_path, '--config', config_path, '--log-level', 'ERROR']), 2)

    def test_main_missing_packets_file(self):
        self.assertEqual(main(['/nonexistent/packets.jsonl', '--log-level', 'ERROR']), 1)


if __name__ == '__main__':
    unittest.main()
