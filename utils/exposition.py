import logging

from prometheus_client import start_http_server
from transitions import Machine

from utils.config import parse_prom_addr

METRICS_PATH = '/metrics'


class ExpositionServer(Machine):
    """
    HTTP endpoint serving a registry in the Prometheus text format.

    The owner drives the lifecycle explicitly: start() binds the socket in the
    calling thread, so a bind error reaches the caller and the server stays
    stopped; stop() shuts the server down and waits for its thread.
    """
    states = ['stopped', 'running']
    transitions = [
        {'trigger': 'start', 'source': 'stopped', 'dest': 'running', 'before': 'bind_and_serve'},
        {'trigger': 'stop', 'source': 'running', 'dest': 'stopped', 'after': 'shutdown'},
    ]

    def __init__(self, registry, prom_addr: str):
        self.registry = registry
        self.host, self.port = parse_prom_addr(prom_addr)
        self.httpd = None
        self.thread = None
        Machine.__init__(self, states=self.states, transitions=self.transitions, initial='stopped')

    @property
    def server_port(self):
        """Actual port, useful when binding port 0"""
        if self.httpd is None:
            return None
        return self.httpd.server_port

    def bind_and_serve(self):
        self.httpd, self.thread = start_http_server(self.port, addr=self.host, registry=self.registry)
        logging.info(f'Serving metrics on http://{self.host}:{self.server_port}{METRICS_PATH}')

    def shutdown(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join()
        logging.info('Metrics exposition stopped')
        self.httpd = None
        self.thread = None
