"""Allow ``python -m script_test_action``."""

from script_test_action.cli import main

main()
