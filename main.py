"""Run a plaintext and a TLS listener that echo the first request chunk."""

import logging
import signal
import sys

from listener.bootstrap.config import build_listener_configs, parse_cli_args
from listener.bootstrap.logging_setup import LoggingConfig, configure_logging
from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.lifecycle.supervisor import ServiceSupervisor

MAIN_LOGGER = ConnectionLoggerAdapter(logging.getLogger("listener.main"), {})

SHUTDOWN_TIMEOUT_SECONDS = 2.0


def main(argv=None) -> int:
    """Start both listeners and block until they terminate."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(
        LoggingConfig(
            level=args.log_level,
            destination=args.log_destination,
            use_json=args.log_json,
            verbose=args.verbose,
        )
    )

    supervisor = ServiceSupervisor(
        build_listener_configs(args),
        buffer_size=args.buffer_size,
        socket_timeout=args.socket_timeout or None,
        verbose=args.verbose,
    )

    def shutdown_handler(signum: int, _frame) -> None:
        MAIN_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        supervisor.shutdown(SHUTDOWN_TIMEOUT_SECONDS)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    MAIN_LOGGER.info(
        "Starting listeners",
        extra={
            "address": args.address,
            "port": args.port,
            "verbose": args.verbose,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
        },
    )
    return supervisor.run()


if __name__ == "__main__":
    sys.exit(main())
