from solarquote_engine.utils import to_number

FIRST_STEP = 1
LAST_STEP = 6

# step -> (position, label); same shape the progress bar helper expects
WIZARD_STEPS = {
    1: (1, "Client"),
    2: (2, "Energy"),
    3: (3, "Components"),
    4: (4, "Mounting & Add-ons"),
    5: (5, "Financials"),
    6: (6, "Summary"),
}


def clamp_step(step) -> int:
    """Step number within 1..6; malformed values restart the wizard at step 1."""
    return min(max(int(to_number(step, FIRST_STEP)), FIRST_STEP), LAST_STEP)


def blocking_reason(step, configuration, result):
    """Why the wizard cannot leave `step`, or None when it can."""
    if step == 1 and configuration.is_new_client and not configuration.new_client.name.strip():
        return "Enter the new client's name to continue."
    if step == 3 and result is not None and result.exceeds_connection_power \
            and not configuration.connection_power_warning_accepted:
        return (f"System power ({result.power_to_check:.2f} kW) exceeds the connection power "
                f"({configuration.connection_power_kw} kW). Accept the risk to continue.")
    return None


def can_proceed(step, configuration, result) -> bool:
    return blocking_reason(step, configuration, result) is None


def next_step(configuration, result):
    """Configuration moved one step forward, or unchanged when the current step is blocked."""
    if not can_proceed(configuration.step, configuration, result):
        return configuration
    return configuration.with_changes(step=clamp_step(configuration.step + 1))


def previous_step(configuration):
    return configuration.with_changes(step=clamp_step(configuration.step - 1))
