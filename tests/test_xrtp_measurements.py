import unittest

from metric_registry import MetricName, MetricRegistry
from parsing.xrtp_measurements import (XrtpStats, dissect_xrtp_stats, estimate_quality, parse_xrtp_stats,
                                       split_xrtp_stats)
from utils.config import Settings

REFERENCE_STATS = 'CS=5000;PR=100;PS=100;PL=2,3;JI=10,20;DL=30,0,0'


def reference_mos(r):
    return 1 + 0.035 * r + 0.000007 * r * (r - 60) * (100 - r)


class XrtpParsingTests(unittest.TestCase):
    def test_split_ignores_segments_without_exactly_one_equal_sign(self):
        fields = split_xrtp_stats('CS=1;garbage;A=b=c;PR=2;;PR=3')
        self.assertEqual(fields, {'CS': '1', 'PR': '3'})

    def test_parse_reference_string(self):
        stats = parse_xrtp_stats(REFERENCE_STATS)
        self.assertEqual(stats, XrtpStats(call_setup_ms=5000, packets_received=100, packets_sent=100,
                                          lost_received=2, lost_sent=3, jitter_received=10, jitter_sent=20,
                                          mean_delay=30))

    def test_malformed_values_stay_unset(self):
        stats = parse_xrtp_stats('CS=abc;PL=1,x;JI=5;DL=7,0;PR= 4')
        self.assertIsNone(stats.call_setup_ms)
        self.assertEqual(stats.lost_received, 1)
        self.assertIsNone(stats.lost_sent)
        self.assertIsNone(stats.jitter_received)
        self.assertIsNone(stats.mean_delay)
        self.assertIsNone(stats.packets_received)


class QualityEstimationTests(unittest.TestCase):
    def test_reference_formula(self):
        quality = estimate_quality(parse_xrtp_stats(REFERENCE_STATS))
        self.assertEqual(quality.loss_ratio, 2)
        self.assertEqual(quality.effective_latency, 60)
        r = 93.2 - 60 / 40
        r = r - 2 * 2.5
        self.assertEqual(quality.r_factor, r)
        self.assertAlmostEqual(quality.r_factor, 86.7)
        self.assertEqual(quality.mos, reference_mos(r))
        self.assertTrue(1 <= quality.mos <= 4.5)

    def test_high_latency_branch(self):
        quality = estimate_quality(XrtpStats(jitter_received=100, mean_delay=50))
        self.assertEqual(quality.effective_latency, 260)
        r = 93.2 - (260 - 120) / 10
        self.assertEqual(quality.r_factor, r)
        self.assertEqual(quality.mos, reference_mos(r))

    def test_missing_packet_counts_default_to_one(self):
        quality = estimate_quality(parse_xrtp_stats('PL=1,1'))
        # (1 + 1) * 100 / (1 + 1)
        self.assertEqual(quality.loss_ratio, 100)
        self.assertEqual(quality.r_factor, 93.2 - 10 / 40 - 100 * 2.5)

    def test_empty_string(self):
        quality = estimate_quality(parse_xrtp_stats(''))
        self.assertEqual(quality.loss_ratio, 0)
        self.assertEqual(quality.effective_latency, 10)
        self.assertEqual(quality.mos, reference_mos(93.2 - 10 / 40))

    def test_loss_ratio_truncates(self):
        quality = estimate_quality(XrtpStats(packets_received=150, packets_sent=150, lost_received=1, lost_sent=1))
        # 200 / 300
        self.assertEqual(quality.loss_ratio, 0)

    def test_negative_counts_do_not_divide_by_zero(self):
        quality = estimate_quality(XrtpStats(packets_received=-1, packets_sent=1, lost_received=-3))
        self.assertEqual(quality.loss_ratio, -150)


class DissectXrtpStatsTests(unittest.TestCase):
    def setUp(self):
        self.registry = MetricRegistry(Settings())

    def test_publishes_fields_and_mos(self):
        dissect_xrtp_stats(self.registry, 'A', REFERENCE_STATS)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_CS, 'A'), 5)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_PLR, 'A'), 2)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_PLS, 'A'), 3)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_JIR, 'A'), 10)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_JIS, 'A'), 20)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_DLE, 'A'), 30)
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_MOS, 'A'),
                         reference_mos(93.2 - 60 / 40 - 2 * 2.5))

    def test_call_setup_is_truncated_to_seconds(self):
        dissect_xrtp_stats(self.registry, '', 'CS=5999')
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_CS, ''), 5)

    def test_malformed_field_is_not_published(self):
        dissect_xrtp_stats(self.registry, 'A', 'CS=oops;JI=4,8')
        self.assertIsNone(self.registry.get_sample_value(MetricName.XRTP_CS, 'A'))
        self.assertEqual(self.registry.get_sample_value(MetricName.XRTP_JIS, 'A'), 8)
        self.assertIsNotNone(self.registry.get_sample_value(MetricName.XRTP_MOS, 'A'))


if __name__ == '__main__':
    unittest.main()
