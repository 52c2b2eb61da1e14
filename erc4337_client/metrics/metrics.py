import logging
from prometheus_client import Summary, start_http_server

REQUEST_TIME = Summary(
    "erc4337_client_request_seconds",
    "Time spent waiting on a json-rpc request",
    ["method"],
)


def run_metrics_server(host="localhost", port=8000):
    """
    run prometheus metrics server
    """
    logging.info(f"Starting Metrics Http Server at: {host}:{port}")
    start_http_server(port, addr=host)
