import logging
from enum import Enum

import pandas as pd
from prometheus_client import CollectorRegistry, Counter, Gauge, disable_created_metrics

from utils.config import Settings


class MetricKind(Enum):
    COUNTER = 'counter'
    GAUGE = 'gauge'


class MetricFeature(Enum):
    """Configuration toggle a series depends on"""
    ALWAYS = 'always'
    RTP_AGENT = 'rtp_agent_stats'
    HORACLIFIX = 'horaclifix_stats'


TARGET_LABELS = ('target_name',)
TYPE_LABELS = ('type',)
METHOD_RESPONSE_LABELS = ('target_name', 'response', 'method')
SBC_LABELS = ('sbc_name', 'inc_realm', 'out_realm')


class MetricName(Enum):
    """
    Every series published by the collector: (name, help, kind, labels, feature).
    The names and label sets are part of the exposition contract.
    """
    METHOD_RESPONSE = ('heplify_method_response', 'SIP method and response counter',
                       MetricKind.COUNTER, METHOD_RESPONSE_LABELS, MetricFeature.ALWAYS)
    PACKETS_TOTAL = ('heplify_packets_total', 'Total packets by HEP type',
                     MetricKind.COUNTER, TYPE_LABELS, MetricFeature.ALWAYS)
    PACKETS_SIZE = ('heplify_packets_size', 'Packet size by HEP type',
                    MetricKind.GAUGE, TYPE_LABELS, MetricFeature.ALWAYS)

    XRTP_CS = ('heplify_xrtp_cs', 'XRTP call setup time', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)
    XRTP_JIR = ('heplify_xrtp_jir', 'XRTP received jitter', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)
    XRTP_JIS = ('heplify_xrtp_jis', 'XRTP sent jitter', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)
    XRTP_PLR = ('heplify_xrtp_plr', 'XRTP received packets lost', MetricKind.GAUGE, TARGET_LABELS,
                MetricFeature.ALWAYS)
    XRTP_PLS = ('heplify_xrtp_pls', 'XRTP sent packets lost', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)
    XRTP_DLE = ('heplify_xrtp_dle', 'XRTP mean rtt', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)
    XRTP_MOS = ('heplify_xrtp_mos', 'XRTP mos', MetricKind.GAUGE, TARGET_LABELS, MetricFeature.ALWAYS)

    RTCP_FRACTION_LOST = ('heplify_rtcp_fraction_lost', 'RTCP fraction lost', MetricKind.GAUGE, (),
                          MetricFeature.ALWAYS)
    RTCP_PACKETS_LOST = ('heplify_rtcp_packets_lost', 'RTCP packets lost', MetricKind.GAUGE, (),
                         MetricFeature.ALWAYS)
    RTCP_JITTER = ('heplify_rtcp_jitter', 'RTCP jitter', MetricKind.GAUGE, (), MetricFeature.ALWAYS)
    RTCP_DLSR = ('heplify_rtcp_dlsr', 'RTCP dlsr', MetricKind.GAUGE, (), MetricFeature.ALWAYS)

    RTCPXR_FRACTION_LOST = ('heplify_rtcpxr_fraction_lost', 'RTCPXR fraction lost', MetricKind.GAUGE, (),
                            MetricFeature.ALWAYS)
    RTCPXR_FRACTION_DISCARD = ('heplify_rtcpxr_fraction_discard', 'RTCPXR fraction discard', MetricKind.GAUGE, (),
                               MetricFeature.ALWAYS)
    RTCPXR_BURST_DENSITY = ('heplify_rtcpxr_burst_density', 'RTCPXR burst density', MetricKind.GAUGE, (),
                            MetricFeature.ALWAYS)
    RTCPXR_GAP_DENSITY = ('heplify_rtcpxr_gap_density', 'RTCPXR gap density', MetricKind.GAUGE, (),
                          MetricFeature.ALWAYS)
    RTCPXR_BURST_DURATION = ('heplify_rtcpxr_burst_duration', 'RTCPXR burst duration', MetricKind.GAUGE, (),
                             MetricFeature.ALWAYS)
    RTCPXR_GAP_DURATION = ('heplify_rtcpxr_gap_duration', 'RTCPXR gap duration', MetricKind.GAUGE, (),
                           MetricFeature.ALWAYS)
    RTCPXR_ROUND_TRIP_DELAY = ('heplify_rtcpxr_round_trip_delay', 'RTCPXR round trip delay', MetricKind.GAUGE, (),
                               MetricFeature.ALWAYS)
    RTCPXR_END_SYSTEM_DELAY = ('heplify_rtcpxr_end_system_delay', 'RTCPXR end system delay', MetricKind.GAUGE, (),
                               MetricFeature.ALWAYS)

    RTPAGENT_DELTA = ('heplify_rtpagent_delta', 'RTPAgent delta', MetricKind.GAUGE, (), MetricFeature.RTP_AGENT)
    RTPAGENT_JITTER = ('heplify_rtpagent_jitter', 'RTPAgent jitter', MetricKind.GAUGE, (), MetricFeature.RTP_AGENT)
    RTPAGENT_MOS = ('heplify_rtpagent_mos', 'RTPAgent mos', MetricKind.GAUGE, (), MetricFeature.RTP_AGENT)
    RTPAGENT_PACKETS_LOST = ('heplify_rtpagent_packets_lost', 'RTPAgent packets lost', MetricKind.GAUGE, (),
                             MetricFeature.RTP_AGENT)
    RTPAGENT_RFACTOR = ('heplify_rtpagent_rfactor', 'RTPAgent rfactor', MetricKind.GAUGE, (),
                        MetricFeature.RTP_AGENT)
    RTPAGENT_SKEW = ('heplify_rtpagent_skew', 'RTPAgent skew', MetricKind.GAUGE, (), MetricFeature.RTP_AGENT)

    HORACLIFIX_INC_RTP_MOS = ('horaclifix_inc_rtp_mos', 'Incoming RTP MOS', MetricKind.GAUGE, SBC_LABELS,
                              MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTP_RVAL = ('horaclifix_inc_rtp_rval', 'Incoming RTP rVal', MetricKind.GAUGE, SBC_LABELS,
                               MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTP_PACKETS = ('horaclifix_inc_rtp_packets', 'Incoming RTP packets', MetricKind.GAUGE,
                                  SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTP_LOST_PACKETS = ('horaclifix_inc_rtp_lost_packets', 'Incoming RTP lostPackets',
                                       MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTP_AVG_JITTER = ('horaclifix_inc_rtp_avg_jitter', 'Incoming RTP avgJitter', MetricKind.GAUGE,
                                     SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTP_MAX_JITTER = ('horaclifix_inc_rtp_max_jitter', 'Incoming RTP maxJitter', MetricKind.GAUGE,
                                     SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_PACKETS = ('horaclifix_inc_rtcp_packets', 'Incoming RTCP packets', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_LOST_PACKETS = ('horaclifix_inc_rtcp_lost_packets', 'Incoming RTCP lostPackets',
                                        MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_AVG_JITTER = ('horaclifix_inc_rtcp_avg_jitter', 'Incoming RTCP avgJitter',
                                      MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_MAX_JITTER = ('horaclifix_inc_rtcp_max_jitter', 'Incoming RTCP maxJitter',
                                      MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_AVG_LAT = ('horaclifix_inc_rtcp_avg_lat', 'Incoming RTCP avgLat', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_INC_RTCP_MAX_LAT = ('horaclifix_inc_rtcp_max_lat', 'Incoming RTCP maxLat', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_MOS = ('horaclifix_out_rtp_mos', 'Outgoing RTP MOS', MetricKind.GAUGE, SBC_LABELS,
                              MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_RVAL = ('horaclifix_out_rtp_rval', 'Outgoing RTP rVal', MetricKind.GAUGE, SBC_LABELS,
                               MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_PACKETS = ('horaclifix_out_rtp_packets', 'Outgoing RTP packets', MetricKind.GAUGE,
                                  SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_LOST_PACKETS = ('horaclifix_out_rtp_lost_packets', 'Outgoing RTP lostPackets',
                                       MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_AVG_JITTER = ('horaclifix_out_rtp_avg_jitter', 'Outgoing RTP avgJitter', MetricKind.GAUGE,
                                     SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTP_MAX_JITTER = ('horaclifix_out_rtp_max_jitter', 'Outgoing RTP maxJitter', MetricKind.GAUGE,
                                     SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_PACKETS = ('horaclifix_out_rtcp_packets', 'Outgoing RTCP packets', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_LOST_PACKETS = ('horaclifix_out_rtcp_lost_packets', 'Outgoing RTCP lostPackets',
                                        MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_AVG_JITTER = ('horaclifix_out_rtcp_avg_jitter', 'Outgoing RTCP avgJitter',
                                      MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_MAX_JITTER = ('horaclifix_out_rtcp_max_jitter', 'Outgoing RTCP maxJitter',
                                      MetricKind.GAUGE, SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_AVG_LAT = ('horaclifix_out_rtcp_avg_lat', 'Outgoing RTCP avgLat', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)
    HORACLIFIX_OUT_RTCP_MAX_LAT = ('horaclifix_out_rtcp_max_lat', 'Outgoing RTCP maxLat', MetricKind.GAUGE,
                                   SBC_LABELS, MetricFeature.HORACLIFIX)

    @property
    def metric_name(self) -> str:
        return self.value[0]

    @property
    def documentation(self) -> str:
        return self.value[1]

    @property
    def kind(self) -> MetricKind:
        return self.value[2]

    @property
    def label_names(self) -> tuple:
        return self.value[3]

    @property
    def feature(self) -> MetricFeature:
        return self.value[4]


class MetricRegistry:
    """
    Owns one prometheus_client CollectorRegistry and a handle for every
    series enabled by the settings. Decoders receive an instance of this
    class instead of touching a process-wide registry.
    """

    def __init__(self, settings: Settings = None, registry: CollectorRegistry = None):
        settings = settings or Settings()
        # Creation timestamps are not part of the published series
        disable_created_metrics()
        self.registry = registry or CollectorRegistry(auto_describe=True)
        self.enabled_features = {MetricFeature.ALWAYS}
        if settings.rtp_agent_stats:
            self.enabled_features.add(MetricFeature.RTP_AGENT)
        if settings.horaclifix_stats:
            self.enabled_features.add(MetricFeature.HORACLIFIX)

        self.handles: dict[MetricName, object] = {}
        for metric in MetricName:
            if metric.feature not in self.enabled_features:
                continue
            self.handles[metric] = self._create_handle(metric)
        logging.info(f'Registered {len(self.handles)} metric series')

    def _create_handle(self, metric: MetricName):
        if metric.kind == MetricKind.COUNTER:
            metric_class = Counter
        else:
            metric_class = Gauge
        return metric_class(metric.metric_name, metric.documentation,
                            labelnames=metric.label_names, registry=self.registry)

    def is_registered(self, metric: MetricName) -> bool:
        return metric in self.handles

    def _child(self, metric: MetricName, label_values: tuple):
        handle = self.handles[metric]
        if metric.label_names:
            return handle.labels(*label_values)
        return handle

    def set_gauge(self, metric: MetricName, value: float, *label_values: str):
        if metric.kind != MetricKind.GAUGE:
            raise TypeError(f'{metric.metric_name} is not a gauge')
        self._child(metric, label_values).set(value)

    def inc_counter(self, metric: MetricName, *label_values: str, amount: float = 1):
        if metric.kind != MetricKind.COUNTER:
            raise TypeError(f'{metric.metric_name} is not a counter')
        self._child(metric, label_values).inc(amount)

    def get_sample_value(self, metric: MetricName, *label_values: str):
        """Reads back the current value of one series, None if never observed"""
        sample_name = metric.metric_name
        if metric.kind == MetricKind.COUNTER and not sample_name.endswith('_total'):
            sample_name = f'{sample_name}_total'
        labels = dict(zip(metric.label_names, label_values))
        return self.registry.get_sample_value(sample_name, labels)

    def get_all_data(self) -> pd.DataFrame:
        """
        Snapshot of every current sample as a DataFrame with the columns
        name, labels and value. Creation timestamps are left out.
        """
        rows = []
        for metric_family in self.registry.collect():
            for sample in metric_family.samples:
                if sample.name.endswith('_created'):
                    continue
                labels = ','.join(f'{k}={v}' for k, v in sorted(sample.labels.items()))
                rows.append({'name': sample.name, 'labels': labels, 'value': sample.value})
        if not rows:
            return pd.DataFrame(columns=['name', 'labels', 'value'])
        return pd.DataFrame(rows).sort_values(['name', 'labels'], ignore_index=True)
