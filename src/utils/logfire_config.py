"""
Centralized Logfire configuration for the Live Presenter engine.
"""
import io
import os
import sys

import logfire

_configured = False


def configure_logfire(force: bool = False) -> bool:
    """
    Configure Logfire with proper error handling.

    Args:
        force: Force reconfiguration even if already configured

    Returns:
        bool: True if successfully configured
    """
    global _configured

    if _configured and not force:
        return True

    token = os.getenv("LOGFIRE_TOKEN")
    if not token:
        # Silently disable if no token
        return False

    try:
        # Suppress the project URL output by redirecting stdout and stderr temporarily
        old_stdout = sys.stdout
        old_stderr = sys.stderr
        sys.stdout = io.StringIO()
        sys.stderr = io.StringIO()
        os.environ['LOGFIRE_CONSOLE_NO_SHOW'] = '1'
        try:
            logfire.configure(
                token=token,
                service_name="live-presenter",
                service_version=os.getenv("APP_VERSION", "dev"),
                console=False
            )
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

        logfire.info("Logfire configured successfully")
        _configured = True
        return True

    except Exception as e:
        print(f"ERROR: Logfire configuration failed: {e}")
        _configured = False
        return False


def is_configured() -> bool:
    """Check if Logfire is configured."""
    return _configured


def instrument_agents() -> bool:
    """Instrument PydanticAI agents (every oracle line) if Logfire is configured."""
    if not is_configured():
        configure_logfire()

    if not is_configured():
        return False

    try:
        # This single line instruments ALL PydanticAI agents
        logfire.instrument_pydantic_ai()
        logfire.info("PydanticAI instrumentation enabled")
        return True
    except Exception as e:
        logfire.error(f"Failed to instrument PydanticAI: {e}")
        return False
