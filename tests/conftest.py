import os
import sys
import warnings
from pathlib import Path

warnings.filterwarnings("ignore", category=DeprecationWarning, module="beanie.*")

# Integrations run against their demo stubs unless a test opts out explicitly
os.environ.update({"DEMO_MODE": "true", "SESSION_STORE_BACKEND": "memory"})

# Ensure the project root is on sys.path so `streamctl` and `tests` packages resolve
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

# Import fixtures so they are available to all tests
from tests.fixtures.control_fixtures import *  # noqa: E402, F403
from tests.fixtures.mongo_fixtures import *  # noqa: E402, F403
