"""Dock preferences for mactl optimize."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click

from mactl.errors import (
    InvalidFlagError,
    InvalidPreferenceValueError,
    PreferenceError,
    UnsupportedKeyError,
)
from mactl.runner import ProcessRunner, request

logger = logging.getLogger(__name__)

DOCK_DOMAIN = "com.apple.dock"

TRUE_WORDS = ("true", "yes", "on", "1")
FALSE_WORDS = ("false", "no", "off", "0")


class ValueType(Enum):
    BOOL = "bool"
    STRING = "string"
    INT = "int"
    FLOAT = "float"


@dataclass(frozen=True)
class DockPreference:
    """An allow-listed Dock preference and its recommended value."""

    name: str
    key: str
    value_type: ValueType
    recommended: Any
    description: str
    choices: Tuple[str, ...] = ()
    minimum: Optional[int] = None
    maximum: Optional[int] = None


@dataclass(frozen=True)
class PreferenceSetting:
    """A desired value for one Dock preference."""

    name: str
    key: str
    value: Any
    value_type: ValueType

    def defaults_args(self) -> Tuple[str, str]:
        """Type flag and value as `defaults write` expects them."""
        return f"-{self.value_type.value}", format_value(self.value, self.value_type)


SUPPORTED_PREFERENCES: Dict[str, DockPreference] = {
    pref.name: pref
    for pref in (
        DockPreference("autohide", "autohide", ValueType.BOOL, True,
                       "Automatically hide and show the Dock"),
        DockPreference("autohide-delay", "autohide-delay", ValueType.FLOAT, 0.0,
                       "Seconds before the hidden Dock appears"),
        DockPreference("autohide-time-modifier", "autohide-time-modifier", ValueType.FLOAT, 0.5,
                       "Seconds the show/hide animation takes"),
        DockPreference("tilesize", "tilesize", ValueType.INT, 48,
                       "Icon size in pixels", minimum=16, maximum=128),
        DockPreference("magnification", "magnification", ValueType.BOOL, False,
                       "Magnify icons on hover"),
        DockPreference("largesize", "largesize", ValueType.INT, 64,
                       "Magnified icon size in pixels", minimum=16, maximum=128),
        DockPreference("orientation", "orientation", ValueType.STRING, "bottom",
                       "Position on screen", choices=("left", "bottom", "right")),
        DockPreference("minimize-effect", "mineffect", ValueType.STRING, "scale",
                       "Minimize animation", choices=("genie", "scale", "suck")),
        DockPreference("show-recents", "show-recents", ValueType.BOOL, False,
                       "Show recent applications"),
        DockPreference("static-only", "static-only", ValueType.BOOL, False,
                       "Show only open applications"),
        DockPreference("launch-animation", "launchanim", ValueType.BOOL, False,
                       "Bounce icons when opening applications"),
        DockPreference("mru-spaces", "mru-spaces", ValueType.BOOL, False,
                       "Rearrange Spaces by most recent use"),
    )
}


def format_value(value: Any, value_type: ValueType) -> str:
    if value_type is ValueType.BOOL:
        return "true" if value else "false"
    if value_type is ValueType.FLOAT:
        return f"{value:g}"
    return str(value)


def parse_value(preference: DockPreference, raw: str) -> Any:
    """Parse a user-supplied value for a preference.

    Raises:
        InvalidPreferenceValueError: The value does not fit the preference.
    """
    text = raw.strip()
    value_type = preference.value_type
    try:
        if value_type is ValueType.BOOL:
            lowered = text.lower()
            if lowered in TRUE_WORDS:
                return True
            if lowered in FALSE_WORDS:
                return False
            raise ValueError(text)
        if value_type is ValueType.INT:
            value = int(text)
        elif value_type is ValueType.FLOAT:
            value = float(text)
        else:
            value = text
    except ValueError:
        raise InvalidPreferenceValueError(
            f"Invalid value '{raw}' for {preference.name}: expected {value_type.value}"
        ) from None

    if preference.choices and value not in preference.choices:
        raise InvalidPreferenceValueError(
            f"Invalid value '{raw}' for {preference.name}: "
            f"choose from {', '.join(preference.choices)}"
        )
    if preference.minimum is not None and value < preference.minimum:
        raise InvalidPreferenceValueError(
            f"{preference.name} must be at least {preference.minimum}"
        )
    if preference.maximum is not None and value > preference.maximum:
        raise InvalidPreferenceValueError(
            f"{preference.name} must be at most {preference.maximum}"
        )
    if value_type is ValueType.FLOAT and value < 0:
        raise InvalidPreferenceValueError(f"{preference.name} cannot be negative")
    return value


def build_setting(name: str, raw_value: Optional[str] = None) -> PreferenceSetting:
    """Validate a preference name and value against the allow-list.

    Args:
        name: User-facing preference name.
        raw_value: Value as typed by the user; None means the recommended value.

    Returns:
        PreferenceSetting: The setting to apply.
    """
    preference = SUPPORTED_PREFERENCES.get(name)
    if preference is None:
        raise UnsupportedKeyError(name, SUPPORTED_PREFERENCES)
    if raw_value is None:
        value = preference.recommended
    else:
        value = parse_value(preference, raw_value)
    return PreferenceSetting(preference.name, preference.key, value, preference.value_type)


def recommended_settings() -> List[PreferenceSetting]:
    return [build_setting(name) for name in SUPPORTED_PREFERENCES]


def read_current_value(runner: ProcessRunner, setting: PreferenceSetting) -> Optional[Any]:
    """Read the current value of a Dock preference, None if it is unset or unreadable."""
    result = runner.run(request("defaults", "read", DOCK_DOMAIN, setting.key, read_only=True))
    if not result.ok:
        return None

    text = result.stdout.strip()
    try:
        if setting.value_type is ValueType.BOOL:
            return text.lower() in TRUE_WORDS
        if setting.value_type is ValueType.INT:
            return int(float(text))
        if setting.value_type is ValueType.FLOAT:
            return float(text)
    except ValueError:
        return None
    return text


def restart_dock(runner: ProcessRunner) -> None:
    result = runner.run(request("killall", "Dock"))
    if not result.ok:
        # killall exits nonzero when the Dock is not running; the write still applies.
        logger.warning("Could not restart the Dock: %s", result.output or result.exit_code)


def apply_preferences(runner: ProcessRunner, settings: Sequence[PreferenceSetting]) -> List[PreferenceSetting]:
    """Write every setting that differs from its current value.

    The Dock is restarted once at the end if anything was written.

    Returns:
        List[PreferenceSetting]: The settings that were actually changed.

    Raises:
        PreferenceError: `defaults write` failed.
    """
    changed = []
    for setting in settings:
        if read_current_value(runner, setting) == setting.value:
            logger.info("Dock %s already %s", setting.name, format_value(setting.value, setting.value_type))
            continue

        type_flag, value = setting.defaults_args()
        result = runner.run(request("defaults", "write", DOCK_DOMAIN, setting.key, type_flag, value))
        if not result.ok:
            raise PreferenceError(
                f"Failed to set Dock {setting.name}: {result.output or f'exit code {result.exit_code}'}"
            )
        changed.append(setting)

    if changed:
        restart_dock(runner)
    return changed


def apply_preference(runner: ProcessRunner, setting: PreferenceSetting) -> bool:
    """Apply a single setting. Returns True if the preference changed."""
    return bool(apply_preferences(runner, [setting]))


def _list_preferences() -> None:
    width = max(len(name) for name in SUPPORTED_PREFERENCES)
    for pref in SUPPORTED_PREFERENCES.values():
        recommended = format_value(pref.recommended, pref.value_type)
        line = f"{pref.name:{width}}  {pref.value_type.value:6}  {recommended:7}  {pref.description}"
        if pref.choices:
            line += f" ({'|'.join(pref.choices)})"
        click.echo(line)


@click.command("dock")
@click.argument("preference", required=False)
@click.option("--value", "value", metavar="V", help="Value to set; defaults to the recommended value")
@click.option("--list", "list_only", is_flag=True, help="List supported preferences and exit")
@click.pass_obj
def dock(app, preference: Optional[str], value: Optional[str], list_only: bool) -> None:
    """Optimize Dock preferences.

    Sets PREFERENCE to --value (or its recommended value) and restarts the Dock.
    Without PREFERENCE, every supported preference is set to its recommended value.
    """
    if list_only:
        _list_preferences()
        return

    if preference is None:
        if value is not None:
            raise InvalidFlagError("--value requires a PREFERENCE")
        settings = recommended_settings()
    else:
        settings = [build_setting(preference, value)]

    changed = apply_preferences(app.runner, settings)
    changed_names = {setting.name for setting in changed}
    for setting in settings:
        shown = format_value(setting.value, setting.value_type)
        if setting.name in changed_names:
            click.echo(f"✅ Set Dock {setting.name} to {shown}")
        else:
            click.echo(f"Dock {setting.name} is already {shown}")
    if changed:
        click.echo("Dock restarted to apply changes.")
