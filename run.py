import sys
from pathlib import Path

# Automatically add src to PYTHONPATH so the runner works from a plain checkout
sys.path.append(str(Path(__file__).parent / "src"))

from gemini_tasks.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
