# Keep the repository root importable and seed the bot's required env vars
# before any test module imports shared.config.
import os
import sys

root = os.path.dirname(os.path.abspath(__file__))
if root not in sys.path:
    sys.path.insert(0, root)

from shared.testing.environment import apply_required_test_environment  # noqa: E402

apply_required_test_environment()
