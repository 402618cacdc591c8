import yaml
from pathlib import Path
import os
from typing import Any, Dict, Optional, List, Callable
import logging
import time
import re
from pydantic import ValidationError
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileModifiedEvent

from prayer_scheduler.core.errors import ConfigError
from prayer_scheduler.prayer.events import Location, Preferences


class ConfigChangeHandler(FileSystemEventHandler):
    def __init__(self, config):
        self.config = config
        self.last_modified = 0
        self.cooldown = 1.0  # Cooldown period in seconds

    def on_modified(self, event):
        if not isinstance(event, FileModifiedEvent):
            return

        current_time = time.time()
        if current_time - self.last_modified < self.cooldown:
            return

        if event.src_path == str(self.config.config_file):
            try:
                self.last_modified = current_time
                self.config.reload()
            except Exception as e:
                logging.error(f"Error handling config change: {e}")

    def on_moved(self, event):
        # Editors and save_location replace the file instead of writing in place
        if getattr(event, "dest_path", None) == str(self.config.config_file):
            try:
                self.config.reload()
            except Exception as e:
                logging.error(f"Error handling config change: {e}")


class Config:
    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        logging.debug("Initializing Config class")

        self.change_callbacks: List[Callable] = []
        self._loading = False  # Lock to prevent recursive reloading
        self.observer = None

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path.cwd()
            self.config_file = self.config_dir / "config.yaml"

        logging.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._ensure_config_exists()
        self._load_config()

        if watch:
            self.observer = Observer()
            logging.info(f"Path monitored for reloading: {self.config_dir}")
            self.observer.schedule(ConfigChangeHandler(self), str(self.config_dir), recursive=False)
            self.observer.start()

    def register_change_callback(self, callback: Callable) -> None:
        """Register a callback to be called when config changes"""
        self.change_callbacks.append(callback)

    def reload(self) -> None:
        """Reload config and notify listeners"""
        if self._loading:
            return

        self._loading = True
        try:
            logging.info("Config file change detected - reloading configuration")

            # Wait briefly for file to be fully written
            time.sleep(0.1)

            old_config = self.data.copy() if hasattr(self, 'data') else {}
            self._load_config()

            if old_config == self.data:
                logging.debug("Config content unchanged, not notifying listeners")
                return
            self._log_config_changes(old_config, self.data)

            for callback in self.change_callbacks:
                try:
                    callback(self.data)
                except Exception as e:
                    logging.error(f"Error in config change callback: {e}")

        except Exception as e:
            logging.error(f"Error reloading config: {e}")
            logging.exception(e)
        finally:
            self._loading = False

    def _log_config_changes(self, old_config: Dict, new_config: Dict) -> None:
        """Log the differences between old and new configs"""
        def compare_dict(path: str, dict1: Dict, dict2: Dict) -> None:
            for key in set(dict1.keys()) | set(dict2.keys()):
                current_path = f"{path}.{key}" if path else key

                if key in dict1 and key in dict2:
                    if isinstance(dict1[key], dict) and isinstance(dict2[key], dict):
                        compare_dict(current_path, dict1[key], dict2[key])
                    elif dict1[key] != dict2[key]:
                        logging.info(f"Config changed: {current_path}: {dict1[key]} -> {dict2[key]}")
                elif key in dict1:
                    logging.info(f"Config removed: {current_path}: {dict1[key]}")
                else:
                    logging.info(f"Config added: {current_path}: {dict2[key]}")

        logging.info("=== Configuration Changes Detected ===")
        compare_dict("", old_config, new_config)
        logging.info("=== End of Configuration Changes ===")

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            # location: {name, latitude, longitude, timezone, calculation_method}
            "preferences": {
                "prayers": ["Fajr", "Dhuhr", "Asr", "Maghrib", "Isha"],
                "grace_seconds": 300,
                "horizon_days": 2,
            },
            "provider": {"backend": "aladhan"},
            "refresh": {"interval_seconds": 21600},
            "api": {"enabled": False, "host": "127.0.0.1", "port": 8765},
            "logging": {
                "level": "INFO",
                "file": str(self.config_dir / "prayer_scheduler.log"),
            },
        }

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if not self.config_dir.exists():
            logging.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)

        if not self.config_file.exists():
            logging.info(f"Creating default config file: {self.config_file}")
            self.config_file.write_text(yaml.dump(self._get_default_config()))

    def _load_env_file(self) -> None:
        """Load environment variables from .env file"""
        env_files = [
            self.config_dir / ".env",
            self.config_dir.parent / ".env",
            Path.cwd() / ".env"
        ]

        env_file = next((path for path in env_files if path.exists()), None)
        if not env_file:
            logging.debug("No .env file found, skipping environment variable loading")
            return

        logging.info(f"Loading environment variables from: {env_file}")
        try:
            with open(env_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue

                    match = re.match(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$', line)
                    if match:
                        key, value = match.groups()
                        value = value.strip('"').strip("'")
                        # Real environment wins over .env
                        if key not in os.environ:
                            os.environ[key] = value
                            logging.debug(f"Loaded env var: {key}")
        except OSError as e:
            logging.warning(f"Error loading .env file: {e}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR_NAME} / $VAR_NAME strings"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith('${') and data.endswith('}'):
                return os.environ.get(data[2:-1], data)
            elif data.startswith('$') and len(data) > 1:
                return os.environ.get(data[1:], data)
            return data
        else:
            return data

    def _load_config(self) -> None:
        """Load configuration from file"""
        try:
            logging.debug(f"Loading config from: {self.config_file}")
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f)

            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")

            self.data = self._substitute_env_vars(new_data)
            logging.debug(f"Loaded config data: {self.data}")

            if "file" in (self.data.get("logging") or {}):
                self.data["logging"]["file"] = os.path.expanduser(self.data["logging"]["file"])

        except (OSError, ValueError, yaml.YAMLError) as e:
            logging.error(f"Error loading config: {e}")
            if hasattr(self, 'data'):
                logging.info("Keeping previous configuration")
            else:
                logging.info("Using default configuration")
                self.data = self._get_default_config()

    def get_section(self, name: str) -> Dict[str, Any]:
        section = self.data.get(name)
        return section if isinstance(section, dict) else {}

    def get_location(self) -> Optional[Location]:
        """Saved location, or None when none is configured.
        Raises:
            ConfigError: location section present but invalid
        """
        raw = self.data.get("location")
        if not raw:
            return None
        try:
            return Location.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid location in {self.config_file}: {e}") from e

    def get_preferences(self) -> Preferences:
        try:
            return Preferences.model_validate(self.get_section("preferences"))
        except ValidationError as e:
            raise ConfigError(f"Invalid preferences in {self.config_file}: {e}") from e

    def save_location(self, location: Location) -> None:
        """Persist a new location into the raw file, keeping ${VAR} placeholders.
        Raises:
            ConfigError: the file could not be read or written
        """
        try:
            with open(self.config_file) as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {self.config_file}: {e}") from e
        if not isinstance(raw, dict):
            raw = {}
        raw["location"] = location.model_dump()

        # Replace in one step so the watcher never reads a half-written file
        tmp_file = self.config_file.with_name(f".{self.config_file.name}.tmp")
        try:
            with open(tmp_file, "w") as f:
                yaml.dump(raw, f)
            self.data["location"] = location.model_dump()
            os.replace(tmp_file, self.config_file)
        except OSError as e:
            raise ConfigError(f"Cannot write {self.config_file}: {e}") from e
