import argparse
import logging
import sys

from prayer_scheduler.core.app import SchedulerApp
from prayer_scheduler.core.config import Config
from prayer_scheduler.core.errors import SchedulerError
from prayer_scheduler.prayer.prayer_base import resolve_timezone


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def show_window(app: SchedulerApp) -> int:
    """Print the notifications a reconcile would keep armed right now."""
    location = app.config.get_location()
    if location is None:
        print("No location configured")
        return 1
    now = app.time_source.now()
    window = app.rescheduler.compute_window(now, location, app.config.get_preferences())
    tz = resolve_timezone(location)
    for event in window:
        print(f"{event.event_id:<20} {event.scheduled_at.astimezone(tz).isoformat()}  {event.label}")
    return 0


def main(argv=None) -> int:
    setup_basic_logging()

    parser = argparse.ArgumentParser(description='Prayer time notification scheduler')
    parser.add_argument('--config', default="config.yaml",
                        help='Path to config file (default: ./config.yaml)')
    parser.add_argument('--show-window', action='store_true',
                        help='Print the upcoming prayer notifications and exit')
    parser.add_argument('--boot-action', default="boot",
                        help='Broadcast action that started the service (default: boot)')
    args = parser.parse_args(argv)

    if args.show_window:
        app = SchedulerApp(config=Config(config_path=args.config, watch=False))
        try:
            return show_window(app)
        except SchedulerError as e:
            logging.error(f"Cannot compute prayer window: {e}")
            return 1
        finally:
            app.cleanup()

    app = SchedulerApp(config_path=args.config)
    app.run(boot_action=args.boot_action)
    return 0


if __name__ == "__main__":
    sys.exit(main())
