def pytest_addoption(parser):
    """Register the e2e script flags so `pytest scripts/test_notifiers_e2e.py --account ...` won't fail.

    This makes pytest accept the script's command-line flags (best-effort). It does not execute the script's main
    automatically.
    """

    # Helper to safely add options without causing conflicts if already registered
    def safe_addoption(*args, **kwargs):
        try:
            parser.addoption(*args, **kwargs)
        except ValueError:
            # Option already registered, skip
            pass

    safe_addoption("--account", action="store", help="Account email to notify (script flag)")
    safe_addoption("--config", action="store", help="Path to config JSON (script flag)")
    safe_addoption("--wait", action="store_true", help="Wait for the notifier test page (script flag)")
    # Note: do NOT register `--verbose` here because pytest already defines it.
