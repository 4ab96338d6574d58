import os
import tempfile

# Keep test runs from writing into the package directory.
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "live_chat_tests.log"))
os.environ.setdefault("DATABASE_URL", "sqlite://")
