#!/usr/bin/env python3
import sys
import logging
import argparse
from fossbot import FossBot
from fossbot.common import load, validate_config, ConfigError, sentry_sdk


def main():
    parser = argparse.ArgumentParser(description="IRC bot")
    parser.add_argument("-c", "--config", required=True, help="Path to bot config file (.json or .yml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log all protocol traffic")
    args = parser.parse_args()

    try:
        botconfig = validate_config(load(args.config))
    except (OSError, ConfigError) as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)-15s %(levelname)-8s %(message)s")
        logging.getLogger('main').critical("Could not load config %s: %s" % (args.config, e))
        sys.exit(2)

    verbose = args.verbose or botconfig["bot"].get("verbose", False)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(asctime)-15s %(levelname)-8s %(message)s")
    log = logging.getLogger('main')

    dsn = botconfig["bot"].get("sentry_dsn")
    if dsn:
        if sentry_sdk:
            sentry_sdk.init(dsn)
        else:
            log.warning("sentry_dsn is set but sentry-sdk is not installed")

    bot = FossBot(botconfig)
    if not bot.run():
        log.critical("Session ended by a connection failure")
        sys.exit(1)


if __name__ == "__main__":
    main()
