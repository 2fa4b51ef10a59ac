"""Betaflight CLI export of recommendations."""
from __future__ import annotations

# Recommendation setting ids that differ from the CLI variable name
_PID_CLI_NAMES = {
    f"pid_{axis}_{term}": f"{term}_{axis}"
    for axis in ("roll", "pitch", "yaw")
    for term in ("p", "i", "d")
}


def cli_name(setting: str) -> str:
    """CLI variable for a recommendation setting (``pid_roll_p`` -> ``p_roll``)."""
    return _PID_CLI_NAMES.get(setting, setting)


def generate_cli_commands(pid_recommendations=(), filter_recommendations=()) -> str:
    """Generate Betaflight CLI commands for the recommended values.

    Returns a multi-line string of 'set' commands ready to paste into
    the Betaflight CLI, ending with 'save'.
    """
    lines = ["# StepScope suggestions"]

    if pid_recommendations:
        lines.append("# PID changes")
        for rec in pid_recommendations:
            lines.append(f"set {cli_name(rec.setting)} = {round(rec.recommended_value)}")

    if filter_recommendations:
        lines.append("")
        lines.append("# Filter changes")
        for rec in filter_recommendations:
            lines.append(f"set {cli_name(rec.setting)} = {round(rec.recommended_value)}")

    lines.append("")
    lines.append("save")
    return "\n".join(lines)
