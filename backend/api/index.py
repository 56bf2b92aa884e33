import sys
import os

# Ensure the backend root is on the Python path
backend_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_root not in sys.path:
    sys.path.insert(0, backend_root)

from remote_viewer.main import app  # noqa: E402, F401
